"""Prebuilt quotation templates installed by `flask seed-templates`"""
from app.services.template_layout import LEGACY, STRUCTURED


def _sections(*titles):
    types = ('client_info', 'items_table', 'summary', 'terms', 'additional_logos')
    return [
        {'id': kind, 'type': kind, 'title': title, 'content': '', 'order': index + 1, 'is_visible': True}
        for index, (kind, title) in enumerate(zip(types, titles))
    ]


CLASSIC = {
    'name': 'Classic',
    'description': 'Structured quotation with client and contact cards, item table and totals banner',
    'layout': {
        'header': {'show': False, 'height': 100, 'content': ''},
        'footer': {
            'show': True,
            'height': 60,
            'content': (
                '<div style="text-align: center; font-size: 11px; color: #6B7280;">'
                '{{company_name}} | {{company_email}} | {{company_phone}}'
                '</div>'
            ),
        },
        'sections': [],
    },
    'styles': {
        'primary_color': '#1F46BA',
        'secondary_color': '#1E40AF',
        'font_family': 'Inter, Helvetica, Arial, sans-serif',
        'font_size': '12px',
        'table_borders': True,
        'alternate_row_colors': True,
        'custom_css': '',
        'structure': STRUCTURED,
    },
    'page_settings': {
        'page_size': 'A4',
        'orientation': 'portrait',
        'margins': {'top': 30, 'right': 30, 'bottom': 30, 'left': 30},
    },
}

CORPORATE_BLUE = {
    'name': 'Corporate Blue',
    'description': 'A clean, professional template with blue accents for corporate use',
    'layout': {
        'header': {
            'show': True,
            'height': 120,
            'content': (
                '<div style="display: flex; justify-content: space-between; align-items: center; '
                'padding: 24px 0; border-bottom: 2px solid #E5E7EB;">'
                '<div style="display: flex; align-items: center; gap: 24px;">'
                '<div>{{company_logo}}</div>'
                '<div><h1 style="font-size: 28px; color: #1F2937; margin: 0;">{{company_name}}</h1>'
                '<div style="font-size: 14px; color: #6B7280;">{{company_tagline}}</div></div>'
                '</div>'
                '<div style="text-align: right;">'
                '<div style="font-size: 13px; font-weight: 600; text-transform: uppercase;">Quotation</div>'
                '<div style="font-size: 22px; font-weight: 700; color: #1F46BA;">{{quotation_number}}</div>'
                '<div style="font-size: 13px; color: #6B7280;">Date: {{date}}</div>'
                '<div style="font-size: 13px; color: #6B7280;">Valid Until: {{valid_until}}</div>'
                '</div>'
                '</div>'
            ),
        },
        'footer': {
            'show': True,
            'height': 80,
            'content': (
                '<div style="display: flex; justify-content: space-between; font-size: 12px; '
                'color: #6B7280; padding: 16px 0; border-top: 1px solid #E5E7EB;">'
                '<div><strong>{{company_name}}</strong><div>{{company_address}}</div>'
                '<div>{{company_email}} | {{company_phone}}</div></div>'
                '<div style="text-align: center;"><strong>Thank you for your business</strong>'
                '<div>Page {{page_number}} of {{total_pages}}</div></div>'
                '<div style="text-align: right;"><strong>{{company_website}}</strong></div>'
                '</div>'
            ),
        },
        'sections': _sections(
            'Client Information', 'Products & Services', 'Summary',
            'Terms & Conditions', 'Partners & Certifications',
        ),
    },
    'styles': {
        'primary_color': '#1F46BA',
        'secondary_color': '#1E40AF',
        'font_family': 'Inter, Helvetica, Arial, sans-serif',
        'font_size': '14px',
        'table_borders': True,
        'alternate_row_colors': True,
        'custom_css': (
            '.section-title { border-bottom: 2px solid #1F46BA; padding-bottom: 8px; }\n'
            '.client-info { border-left: 4px solid #1F46BA; background-color: #F8FAFC; }\n'
        ),
        'structure': LEGACY,
    },
    'page_settings': {
        'page_size': 'A4',
        'orientation': 'portrait',
        'margins': {'top': 20, 'right': 20, 'bottom': 20, 'left': 20},
    },
}

MINIMAL = {
    'name': 'Minimal',
    'description': 'Understated black and white layout with generous whitespace',
    'layout': {
        'header': {
            'show': True,
            'height': 90,
            'content': (
                '<div style="padding: 16px 0;">'
                '<div style="font-size: 24px; font-weight: 300; letter-spacing: 2px;">{{company_name}}</div>'
                '<div style="font-size: 12px; color: #666666;">'
                'Quotation {{quotation_number}} | {{date}}</div>'
                '</div>'
            ),
        },
        'footer': {
            'show': True,
            'height': 50,
            'content': (
                '<div style="font-size: 11px; color: #999999; text-align: center;">'
                '{{company_website}}</div>'
            ),
        },
        'sections': _sections('Prepared For', 'Items', 'Total', 'Terms', 'Partners'),
    },
    'styles': {
        'primary_color': '#111111',
        'secondary_color': '#333333',
        'font_family': 'Helvetica, Arial, sans-serif',
        'font_size': '12px',
        'table_borders': False,
        'alternate_row_colors': False,
        'custom_css': '',
        'structure': LEGACY,
    },
    'page_settings': {
        'page_size': 'A4',
        'orientation': 'portrait',
        'margins': {'top': 20, 'right': 20, 'bottom': 20, 'left': 20},
    },
}

PREBUILT_TEMPLATES = [CLASSIC, CORPORATE_BLUE, MINIMAL]
