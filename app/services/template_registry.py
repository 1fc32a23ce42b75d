"""Quotation template registry.

Templates are organization-scoped. Every organization that has templates
has exactly one default: the first template becomes default, switching
the default is a single transaction (lock, clear, set, verify), and the
partial unique index `uq_quotation_template_default` rejects a second
default written by a concurrent request.
"""
import copy

from flask import current_app
from sqlalchemy.exc import IntegrityError

from config.database import db
from app.models import Quotation, QuotationTemplate
from app.services.activity_logger import log_activity, log_audit, ActivityType, EntityType
from app.services.exceptions import (
    CannotDeleteDefault, DefaultTemplateConflict, DefaultTemplateRequired,
    InvalidTemplate, InvariantViolation, TemplateNotFound,
)
from app.services.prebuilt_templates import PREBUILT_TEMPLATES
from app.services.template_layout import (
    COLOR_RE, DEFAULT_FOOTER_HEIGHT, DEFAULT_HEADER_HEIGHT, DEFAULT_PAGE_SETTINGS,
    DEFAULT_STYLES, FONT_FAMILY_RE, FONT_SIZE_RE, ORIENTATIONS, PAGE_SIZES, STRUCTURES,
)
from app.utils.helpers import model_to_dict
from app.utils.security import sanitize_css, sanitize_string, sanitize_template_html

COPY_SUFFIX = ' (Copy)'


# Normalization of submitted template data

def _clean_html(value, field):
    value = value or ''
    if not isinstance(value, str):
        raise InvalidTemplate(f'{field} must be a string')
    if len(value) > current_app.config['TEMPLATE_HTML_MAX_LENGTH']:
        raise InvalidTemplate(f'{field} is too long')
    return sanitize_template_html(value)


def _clean_block(raw, default_height, field):
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise InvalidTemplate(f'{field} must be an object')
    try:
        height = int(raw.get('height', default_height))
    except (TypeError, ValueError):
        raise InvalidTemplate(f'{field}.height must be a number')
    return {
        'show': bool(raw.get('show', True)),
        'height': height,
        'content': _clean_html(raw.get('content'), f'{field}.content'),
    }


def normalize_layout(layout):
    if layout is None:
        layout = {}
    if not isinstance(layout, dict):
        raise InvalidTemplate('layout must be an object')

    sections = layout.get('sections') or []
    if not isinstance(sections, list):
        raise InvalidTemplate('layout.sections must be a list')

    cleaned = []
    for index, section in enumerate(sections):
        if not isinstance(section, dict) or not section.get('type'):
            raise InvalidTemplate(f'Section {index + 1} must have a type')
        try:
            order = int(section.get('order', index + 1))
        except (TypeError, ValueError):
            raise InvalidTemplate(f'Section {index + 1} order must be a number')
        section_type = sanitize_string(str(section['type']))
        cleaned.append({
            'id': sanitize_string(str(section.get('id') or f'{section_type}_{index + 1}')),
            'type': section_type,
            'title': sanitize_string(section.get('title') or ''),
            'content': _clean_html(section.get('content'), f'Section {index + 1} content'),
            'order': order,
            'is_visible': bool(section.get('is_visible', True)),
        })

    return {
        'header': _clean_block(layout.get('header'), DEFAULT_HEADER_HEIGHT, 'layout.header'),
        'footer': _clean_block(layout.get('footer'), DEFAULT_FOOTER_HEIGHT, 'layout.footer'),
        'sections': cleaned,
    }


def normalize_styles(styles):
    if styles is None:
        styles = {}
    if not isinstance(styles, dict):
        raise InvalidTemplate('styles must be an object')

    result = dict(DEFAULT_STYLES)
    result.update({k: v for k, v in styles.items() if k in DEFAULT_STYLES and v is not None})

    for key in ('primary_color', 'secondary_color'):
        if not COLOR_RE.match(str(result[key])):
            raise InvalidTemplate(f'{key} must be a hex color')
    if not FONT_SIZE_RE.match(str(result['font_size'])):
        raise InvalidTemplate('font_size must be given in px')
    if not FONT_FAMILY_RE.match(str(result['font_family'])):
        raise InvalidTemplate('font_family contains unsupported characters')
    if result['structure'] not in STRUCTURES:
        raise InvalidTemplate(f"structure must be one of: {', '.join(STRUCTURES)}")

    custom_css = result['custom_css'] or ''
    if len(custom_css) > current_app.config['TEMPLATE_HTML_MAX_LENGTH']:
        raise InvalidTemplate('custom_css is too long')
    result['custom_css'] = sanitize_css(custom_css)
    result['table_borders'] = bool(result['table_borders'])
    result['alternate_row_colors'] = bool(result['alternate_row_colors'])
    return result


def normalize_page_settings(page_settings):
    if page_settings is None:
        page_settings = {}
    if not isinstance(page_settings, dict):
        raise InvalidTemplate('page_settings must be an object')

    page_size = page_settings.get('page_size', DEFAULT_PAGE_SETTINGS['page_size'])
    if page_size not in PAGE_SIZES:
        raise InvalidTemplate(f"page_size must be one of: {', '.join(PAGE_SIZES)}")
    orientation = page_settings.get('orientation', DEFAULT_PAGE_SETTINGS['orientation'])
    if orientation not in ORIENTATIONS:
        raise InvalidTemplate(f"orientation must be one of: {', '.join(ORIENTATIONS)}")

    margins = dict(DEFAULT_PAGE_SETTINGS['margins'])
    raw_margins = page_settings.get('margins') or {}
    if not isinstance(raw_margins, dict):
        raise InvalidTemplate('margins must be an object')
    for side in margins:
        if side in raw_margins:
            try:
                value = int(raw_margins[side])
            except (TypeError, ValueError):
                raise InvalidTemplate(f'margins.{side} must be a number')
            if not 0 <= value <= 200:
                raise InvalidTemplate(f'margins.{side} must be between 0 and 200')
            margins[side] = value

    return {'page_size': page_size, 'orientation': orientation, 'margins': margins}


def _clean_name(name):
    name = sanitize_string(name or '')
    if not name:
        raise InvalidTemplate('Template name is required')
    if len(name) > 100:
        raise InvalidTemplate('Template name must be at most 100 characters')
    return name


def template_to_dict(template):
    return model_to_dict(template)


# Queries

def list_templates(organization_id):
    """Organization templates, default first, then by name"""
    return QuotationTemplate.query.filter_by(organization_id=organization_id).order_by(
        QuotationTemplate.is_default.desc(),
        QuotationTemplate.name.asc(),
        QuotationTemplate.id.asc(),
    ).all()


def get_template(organization_id, template_id):
    template = QuotationTemplate.query.filter_by(
        id=template_id, organization_id=organization_id
    ).first()
    if not template:
        raise TemplateNotFound(template_id=template_id)
    return template


def get_default_template(organization_id):
    """The organization default, or None when it has no templates"""
    defaults = QuotationTemplate.query.filter_by(
        organization_id=organization_id, is_default=True
    ).all()
    if len(defaults) > 1:
        current_app.logger.critical(
            'Organization %s has %d default templates: %s',
            organization_id, len(defaults), [t.id for t in defaults],
        )
        raise InvariantViolation(
            'More than one default template is configured for this organization',
            template_ids=[t.id for t in defaults],
        )
    return defaults[0] if defaults else None


def resolve_template(organization_id, template_id=None):
    """Template used to render a quotation.

    An explicit id must exist in the organization; there is no fallback to
    the default. Without an id the organization default is used.
    """
    if template_id is not None:
        return get_template(organization_id, template_id)

    template = get_default_template(organization_id)
    if template is None:
        raise TemplateNotFound('No default template is configured for this organization')
    return template


# Default switching

def _make_default(organization_id, template):
    """Clear the current default and mark `template`; caller owns the transaction"""
    QuotationTemplate.query.filter(
        QuotationTemplate.organization_id == organization_id,
        QuotationTemplate.is_default.is_(True),
        QuotationTemplate.id != template.id,
    ).update({'is_default': False}, synchronize_session='fetch')
    db.session.flush()

    template.is_default = True
    db.session.flush()

    defaults = QuotationTemplate.query.filter_by(
        organization_id=organization_id, is_default=True
    ).count()
    if defaults != 1:
        raise DefaultTemplateConflict(default_count=defaults)


def _commit_default_change():
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.warning('Concurrent default template change rejected by the database')
        raise DefaultTemplateConflict()


def set_default(organization_id, template_id):
    templates = QuotationTemplate.query.filter_by(
        organization_id=organization_id
    ).with_for_update().all()

    template = next((t for t in templates if t.id == template_id), None)
    if template is None:
        db.session.rollback()
        raise TemplateNotFound(template_id=template_id)

    previous = [t.id for t in templates if t.is_default and t.id != template.id]
    try:
        _make_default(organization_id, template)
    except IntegrityError:
        db.session.rollback()
        raise DefaultTemplateConflict()
    except DefaultTemplateConflict:
        db.session.rollback()
        raise

    log_activity(
        activity_type=ActivityType.SET_DEFAULT,
        description=f'Set {template.name} as the default quotation template',
        entity_type=EntityType.QUOTATION_TEMPLATE,
        entity_id=template.id,
        extra_data={'previous_default_ids': previous},
        organization_id=organization_id,
        commit=False,
    )
    _commit_default_change()
    current_app.logger.info('Default template for organization %s is now %s', organization_id, template.id)
    return template


# Mutations

def create_template(organization_id, data, creator_id=None):
    template = QuotationTemplate(
        organization_id=organization_id,
        name=_clean_name(data.get('name')),
        description=sanitize_string(data.get('description')),
        layout=normalize_layout(data.get('layout')),
        styles=normalize_styles(data.get('styles')),
        page_settings=normalize_page_settings(data.get('page_settings')),
        preview_image_url=data.get('preview_image_url'),
        is_default=False,
        created_by=creator_id,
    )

    existing = len(QuotationTemplate.query.filter_by(organization_id=organization_id).with_for_update().all())
    db.session.add(template)
    try:
        if existing == 0:
            template.is_default = True
            db.session.flush()
        elif data.get('is_default'):
            db.session.flush()
            _make_default(organization_id, template)
        else:
            db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise DefaultTemplateConflict()
    except DefaultTemplateConflict:
        db.session.rollback()
        raise

    log_audit('quotation_templates', template.id, 'CREATE',
              new_values=template_to_dict(template), organization_id=organization_id)
    log_activity(
        activity_type=ActivityType.CREATE,
        description=f'Created quotation template {template.name}',
        entity_type=EntityType.QUOTATION_TEMPLATE,
        entity_id=template.id,
        organization_id=organization_id,
        commit=False,
    )
    _commit_default_change()
    return template


def update_template(organization_id, template_id, data):
    template = get_template(organization_id, template_id)

    if 'is_default' in data and not data['is_default'] and template.is_default:
        raise DefaultTemplateRequired()

    old_values = template_to_dict(template)

    if 'name' in data:
        template.name = _clean_name(data['name'])
    if 'description' in data:
        template.description = sanitize_string(data['description'])
    if 'layout' in data:
        template.layout = normalize_layout(data['layout'])
    if 'styles' in data:
        template.styles = normalize_styles(data['styles'])
    if 'page_settings' in data:
        template.page_settings = normalize_page_settings(data['page_settings'])
    if 'preview_image_url' in data:
        template.preview_image_url = data['preview_image_url']

    db.session.flush()
    log_audit('quotation_templates', template.id, 'UPDATE',
              old_values=old_values, new_values=template_to_dict(template),
              organization_id=organization_id)
    db.session.commit()

    if data.get('is_default') and not template.is_default:
        template = set_default(organization_id, template.id)
    return template


def delete_template(organization_id, template_id):
    """Delete a non-default template.

    Quotations that pinned it go back to the organization default.
    """
    template = get_template(organization_id, template_id)
    if template.is_default:
        raise CannotDeleteDefault(template_id=template.id)

    reassigned = Quotation.query.filter_by(
        organization_id=organization_id, template_id=template.id
    ).update({'template_id': None}, synchronize_session='fetch')

    log_audit('quotation_templates', template.id, 'DELETE',
              old_values=template_to_dict(template), organization_id=organization_id)
    log_activity(
        activity_type=ActivityType.DELETE,
        description=f'Deleted quotation template {template.name}',
        entity_type=EntityType.QUOTATION_TEMPLATE,
        entity_id=template.id,
        extra_data={'reassigned_quotations': reassigned},
        organization_id=organization_id,
        commit=False,
    )
    db.session.delete(template)
    db.session.commit()


def duplicate_template(organization_id, template_id, creator_id=None):
    source = get_template(organization_id, template_id)

    name = f'{source.name}{COPY_SUFFIX}'
    if len(name) > 100:
        name = source.name[:100 - len(COPY_SUFFIX)] + COPY_SUFFIX

    template = QuotationTemplate(
        organization_id=organization_id,
        name=name,
        description=source.description,
        layout=copy.deepcopy(source.layout),
        styles=copy.deepcopy(source.styles),
        page_settings=copy.deepcopy(source.page_settings),
        preview_image_url=source.preview_image_url,
        is_default=False,
        created_by=creator_id,
    )
    db.session.add(template)
    db.session.flush()

    log_activity(
        activity_type=ActivityType.DUPLICATE,
        description=f'Duplicated quotation template {source.name}',
        entity_type=EntityType.QUOTATION_TEMPLATE,
        entity_id=template.id,
        extra_data={'source_template_id': source.id},
        organization_id=organization_id,
        commit=False,
    )
    db.session.commit()
    return template


def seed_prebuilt_templates(organization_id, creator_id=None):
    """Install the prebuilt templates that the organization does not have yet.

    Returns the templates created by this call.
    """
    existing = {
        name for (name,) in db.session.query(QuotationTemplate.name)
        .filter_by(organization_id=organization_id).all()
    }

    created = []
    for data in PREBUILT_TEMPLATES:
        if data['name'] in existing:
            continue
        created.append(create_template(organization_id, copy.deepcopy(data), creator_id=creator_id))

    current_app.logger.info(
        'Seeded %d prebuilt templates for organization %s', len(created), organization_id
    )
    return created
