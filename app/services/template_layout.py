"""Template layout model.

A template's stored JSON is read once into one of two layout variants:

    StructuredLayout  fixed document blocks; only the footer is configurable
    FreeformLayout    header, ordered visibility-flagged sections, footer

`styles.structure` selects the variant. Missing optional fields fall back
to the defaults below; a missing template is never papered over here.
"""
import re
from collections import namedtuple

STRUCTURED = 'structured'
LEGACY = 'legacy'
STRUCTURES = (STRUCTURED, LEGACY)

BUILTIN_SECTION_TYPES = ('client_info', 'items_table', 'summary', 'terms', 'additional_logos')

PAGE_SIZES = {
    'A4': ('210mm', '297mm'),
    'A5': ('148mm', '210mm'),
    'Letter': ('216mm', '279mm'),
    'Legal': ('216mm', '356mm'),
}
ORIENTATIONS = ('portrait', 'landscape')

DEFAULT_STYLES = {
    'primary_color': '#3B82F6',
    'secondary_color': '#1E40AF',
    'font_family': 'Inter, Helvetica, Arial, sans-serif',
    'font_size': '12px',
    'table_borders': True,
    'alternate_row_colors': True,
    'custom_css': '',
    'structure': STRUCTURED,
}

DEFAULT_PAGE_SETTINGS = {
    'page_size': 'A4',
    'orientation': 'portrait',
    'margins': {'top': 40, 'right': 40, 'bottom': 40, 'left': 40},
}

DEFAULT_HEADER_HEIGHT = 100
DEFAULT_FOOTER_HEIGHT = 80

COLOR_RE = re.compile(r'^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$')
FONT_SIZE_RE = re.compile(r'^\d{1,2}(?:\.\d{1,2})?px$')
FONT_FAMILY_RE = re.compile(r'^[A-Za-z0-9 ,\-\'_]+$')

Block = namedtuple('Block', ['show', 'height', 'content'])
Section = namedtuple('Section', ['id', 'type', 'title', 'content', 'order', 'is_visible'])
PageSettings = namedtuple('PageSettings', ['page_size', 'orientation', 'margins'])

StructuredLayout = namedtuple('StructuredLayout', ['footer'])
FreeformLayout = namedtuple('FreeformLayout', ['header', 'sections', 'footer'])


def _block(raw, default_height):
    raw = raw if isinstance(raw, dict) else {}
    return Block(
        show=bool(raw.get('show', True)),
        height=_int(raw.get('height'), default_height),
        content=raw.get('content') or '',
    )


def _int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _sections(raw_sections):
    sections = []
    for index, raw in enumerate(raw_sections or []):
        if not isinstance(raw, dict) or not raw.get('type'):
            continue
        sections.append(Section(
            id=str(raw.get('id') or f"{raw['type']}_{index + 1}"),
            type=str(raw['type']),
            title=raw.get('title') or '',
            content=raw.get('content') or '',
            order=_int(raw.get('order'), index + 1),
            is_visible=bool(raw.get('is_visible', True)),
        ))
    return sections


def resolve_styles(template):
    """Template styles merged over the defaults, with unsafe values dropped"""
    raw = template.styles if isinstance(template.styles, dict) else {}
    styles = dict(DEFAULT_STYLES)
    for key, value in raw.items():
        if key in styles and value is not None:
            styles[key] = value

    if not COLOR_RE.match(str(styles['primary_color'])):
        styles['primary_color'] = DEFAULT_STYLES['primary_color']
    if not COLOR_RE.match(str(styles['secondary_color'])):
        styles['secondary_color'] = DEFAULT_STYLES['secondary_color']
    if not FONT_SIZE_RE.match(str(styles['font_size'])):
        styles['font_size'] = DEFAULT_STYLES['font_size']
    if not FONT_FAMILY_RE.match(str(styles['font_family'])):
        styles['font_family'] = DEFAULT_STYLES['font_family']
    if styles['structure'] not in STRUCTURES:
        styles['structure'] = STRUCTURED
    styles['custom_css'] = str(styles['custom_css'] or '').replace('<', '')
    return styles


def resolve_page_settings(template):
    raw = template.page_settings if isinstance(template.page_settings, dict) else {}
    page_size = raw.get('page_size') if raw.get('page_size') in PAGE_SIZES else 'A4'
    orientation = raw.get('orientation') if raw.get('orientation') in ORIENTATIONS else 'portrait'

    margins = dict(DEFAULT_PAGE_SETTINGS['margins'])
    raw_margins = raw.get('margins') if isinstance(raw.get('margins'), dict) else {}
    for side in margins:
        value = _int(raw_margins.get(side), margins[side])
        margins[side] = min(max(value, 0), 200)

    return PageSettings(page_size=page_size, orientation=orientation, margins=margins)


def parse_layout(template):
    """Read a template into StructuredLayout or FreeformLayout"""
    layout = template.layout if isinstance(template.layout, dict) else {}
    footer = _block(layout.get('footer'), DEFAULT_FOOTER_HEIGHT)

    if resolve_styles(template)['structure'] == LEGACY:
        return FreeformLayout(
            header=_block(layout.get('header'), DEFAULT_HEADER_HEIGHT),
            sections=_sections(layout.get('sections')),
            footer=footer,
        )
    return StructuredLayout(footer=footer)
