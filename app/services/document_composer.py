"""Quotation document composer.

Turns a quotation plus a template into one self-contained HTML document
that the in-app preview, the PDF exporter and the public share page all
consume unmodified. Pricing is recomputed from the line items on every
render; stored totals are never trusted for display.
"""
import re
from collections import namedtuple
from html import escape

from app.services.exceptions import TemplateNotFound
from app.services.formatting import (
    EM_DASH, amount_in_words, format_currency, format_date, format_percent, format_quantity,
)
from app.services.pricing import compute_for_quotation, effective_total
from app.services.template_layout import (
    PAGE_SIZES, FreeformLayout, parse_layout, resolve_page_settings, resolve_styles,
)

TOKEN_RE = re.compile(r'\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}')

ATTRIBUTION_HTML = (
    '<div class="qd-attribution">'
    '<span>Powered by</span> <strong>QuoteDesk</strong>'
    '</div>'
)

OrganizationDefaults = namedtuple('OrganizationDefaults', [
    'company_name', 'email', 'phone', 'address', 'tagline', 'website',
    'logo_url', 'signature_url', 'additional_logos',
    'payment_terms', 'terms_and_conditions', 'tax_id',
])

EMPTY_DEFAULTS = OrganizationDefaults('', '', '', '', '', '', None, None, [], '', '', '')

_Context = namedtuple('_Context', ['quotation', 'defaults', 'totals', 'total', 'variables', 'styles'])


def organization_defaults(organization):
    """Sender details for rendering: quotation settings first, then the organization"""
    if organization is None:
        return EMPTY_DEFAULTS
    settings = organization.quotation_settings

    def pick(setting_field, org_field):
        value = getattr(settings, setting_field, None) if settings else None
        return value or getattr(organization, org_field, None) or ''

    return OrganizationDefaults(
        company_name=pick('company_name', 'name'),
        email=pick('company_email', 'email'),
        phone=pick('company_phone', 'phone'),
        address=pick('company_address', 'address'),
        tagline=organization.tagline or '',
        website=pick('company_website', 'website'),
        logo_url=organization.logo_url or None,
        signature_url=(settings.digital_signature_url if settings else None) or None,
        additional_logos=list(organization.additional_logos or []),
        payment_terms=(settings.payment_terms if settings else None) or '',
        terms_and_conditions=(settings.terms_and_conditions if settings else None) or '',
        tax_id=(settings.tax_id if settings else None) or '',
    )


# Asset resolution: quotation override, then organization, then nothing

def resolve_logo_url(quotation, defaults):
    return quotation.logo_url or defaults.logo_url or None


def resolve_signature_url(quotation, defaults):
    return quotation.signature_url or defaults.signature_url or None


def resolve_additional_logos(quotation, defaults):
    logos = quotation.additional_logos or defaults.additional_logos or []
    return [logo for logo in logos if logo]


def _img(url, alt, css_class):
    if not url:
        return ''
    return f'<img src="{escape(url)}" alt="{escape(alt)}" class="{css_class}" />'


# Variable substitution

def build_variables(quotation, defaults, total):
    """The closed token dictionary; every value is ready-to-insert markup"""
    contact = quotation.contact
    company = contact.company if contact else None
    currency = quotation.currency

    text = {
        'company_name': defaults.company_name,
        'company_email': defaults.email,
        'company_phone': defaults.phone,
        'company_address': defaults.address,
        'company_tagline': defaults.tagline,
        'company_website': defaults.website,
        'quotation_number': quotation.quotation_number,
        'quotation_title': quotation.title,
        'date': format_date(quotation.issue_date),
        'valid_until': format_date(quotation.valid_until),
        'client_name': contact.full_name if contact else '',
        'client_email': contact.email if contact else '',
        'client_phone': (contact.phone or contact.whatsapp_number) if contact else '',
        'client_company': company.name if company else '',
        'total_amount': format_currency(total, currency),
        'amount_in_words': amount_in_words(total, currency),
        'currency': currency,
        # A PDF renderer paginates; the HTML document is a single page
        'page_number': '1',
        'total_pages': '1',
    }
    variables = {key: escape(value or '') for key, value in text.items()}
    variables['company_logo'] = _img(
        resolve_logo_url(quotation, defaults), f'{defaults.company_name or "Company"} logo', 'company-logo'
    )
    variables['signature'] = _img(resolve_signature_url(quotation, defaults), 'Signature', 'signature-image')
    return variables


def substitute(text, variables):
    """Single pass over {{token}} placeholders; unknown tokens stay literal"""
    if not text:
        return ''

    def replace(match):
        return variables.get(match.group(1), match.group(0))

    return TOKEN_RE.sub(replace, text)


# Shared blocks

def _lines(text):
    return '<br/>'.join(escape(line) for line in str(text).splitlines() if line.strip())


def _row(label, value):
    if not value:
        return ''
    return f'<div class="info-row"><span class="info-label">{label}</span><span class="info-value">{escape(value)}</span></div>'


def _client_rows(quotation):
    """Quote To: only the contact being quoted and their company"""
    contact = quotation.contact
    if contact is None:
        return f'<div class="info-row"><span class="info-value">{EM_DASH}</span></div>'

    company = contact.company
    address = contact.full_address or (company.address if company else '')
    return ''.join([
        f'<div class="client-name">{escape(contact.full_name)}</div>',
        _row('Company', company.name if company else ''),
        _row('Designation', contact.designation),
        _row('Email', contact.email),
        _row('Phone', contact.phone or contact.whatsapp_number),
        _row('Address', address),
    ])


def _sender_rows(quotation, defaults):
    """Contact Person: account manager, then quotation owner, then the organization"""
    person = quotation.account_manager or quotation.creator
    if person is not None:
        return ''.join([
            f'<div class="client-name">{escape(person.full_name)}</div>',
            _row('Designation', person.designation),
            _row('Email', person.email),
            _row('Phone', person.phone or person.mobile),
        ])
    return ''.join([
        f'<div class="client-name">{escape(defaults.company_name or EM_DASH)}</div>',
        _row('Email', defaults.email),
        _row('Phone', defaults.phone),
    ])


def _items_table(ctx):
    currency = ctx.quotation.currency
    rows = []
    for index, (item, line_total) in enumerate(zip(ctx.quotation.items, ctx.totals.line_totals), start=1):
        description = f'<div class="item-description">{_lines(item.description)}</div>' if item.description else ''
        rows.append(
            '<tr>'
            f'<td class="num">{index}</td>'
            f'<td><div class="item-name">{escape(item.name or "")}</div>{description}</td>'
            f'<td class="num">{format_quantity(item.quantity)}</td>'
            f'<td class="num">{format_currency(item.unit_price, currency)}</td>'
            f'<td class="num">{format_percent(item.discount_percent)}</td>'
            f'<td class="num">{format_percent(item.tax_percent)}</td>'
            f'<td class="num">{format_currency(line_total, currency)}</td>'
            '</tr>'
        )
    if not rows:
        rows.append('<tr><td colspan="7" class="empty-row">No items</td></tr>')

    return (
        '<table class="items-table">'
        '<thead><tr>'
        '<th class="num">#</th><th>Item</th><th class="num">Qty</th><th class="num">Unit Price</th>'
        '<th class="num">Discount</th><th class="num">Tax</th><th class="num">Amount</th>'
        '</tr></thead>'
        f'<tbody>{"".join(rows)}</tbody>'
        '</table>'
    )


def _summary_rows(ctx):
    quotation, totals = ctx.quotation, ctx.totals
    currency = quotation.currency

    rows = [('Subtotal', format_currency(totals.subtotal, currency))]
    if totals.discount_amount:
        label = 'Discount'
        if (quotation.discount_type or 'percentage') == 'percentage':
            label = f'Discount ({format_percent(quotation.discount_value)})'
        rows.append((label, f'-{format_currency(totals.discount_amount, currency)}'))
    rows.append((
        f'{escape(quotation.tax_name or "Tax")} ({format_percent(quotation.tax_percentage)})',
        format_currency(totals.tax_amount, currency),
    ))
    if totals.charges:
        rows.append(('Shipping &amp; Other Charges', format_currency(totals.charges, currency)))

    html = ''.join(
        f'<tr><td class="summary-label">{label}</td><td class="num">{value}</td></tr>'
        for label, value in rows
    )
    if quotation.total_is_manual_override and ctx.total != totals.total:
        html += (
            '<tr class="manual-total"><td class="summary-label">Adjusted Total</td>'
            f'<td class="num">{format_currency(ctx.total, currency)}</td></tr>'
        )
    return html


def _summary_table(ctx):
    return (
        f'<table class="summary-table">{_summary_rows(ctx)}'
        '<tr class="total-row"><td class="summary-label">Total</td>'
        f'<td class="num">{ctx.variables["total_amount"]}</td></tr>'
        '</table>'
    )


def _terms_html(ctx):
    terms = ctx.quotation.terms
    if terms:
        return ''.join(
            '<div class="term">'
            + (f'<div class="term-title">{escape(term.title)}</div>' if term.title else '')
            + f'<div class="term-text">{_lines(term.description)}</div></div>'
            for term in terms
        )
    if ctx.defaults.terms_and_conditions:
        return f'<div class="term-text">{_lines(ctx.defaults.terms_and_conditions)}</div>'
    return ''


def _payment_terms_html(ctx):
    text = ctx.quotation.payment_terms or ctx.defaults.payment_terms
    return _lines(text) if text else ''


def _additional_logos_html(ctx):
    logos = resolve_additional_logos(ctx.quotation, ctx.defaults)
    if not logos:
        return ''
    images = ''.join(_img(url, 'Partner logo', 'additional-logo') for url in logos)
    return f'<div class="additional-logos">{images}</div>'


def _footer_html(ctx, footer):
    if not footer.show or not footer.content:
        return ''
    return f'<footer class="document-footer">{substitute(footer.content, ctx.variables)}</footer>'


# Structured mode

def _render_structured(ctx, layout):
    quotation, variables = ctx.quotation, ctx.variables

    band = (
        '<div class="title-band">'
        f'<div class="brand">{variables["company_logo"]}'
        f'<div><div class="brand-name">{variables["company_name"]}</div>'
        f'<div class="brand-tagline">{variables["company_tagline"]}</div></div></div>'
        '<div class="meta">'
        '<div class="doc-label">Quotation</div>'
        f'<div class="doc-number">{variables["quotation_number"]}</div>'
        f'<div>Date: {variables["date"]}</div>'
        f'<div>Valid Until: {variables["valid_until"]}</div>'
        '</div>'
        '</div>'
        f'<h2 class="doc-title">{variables["quotation_title"]}</h2>'
    )

    cards = (
        '<div class="card-pair">'
        f'<div class="card"><div class="card-title">Quote To</div>{_client_rows(quotation)}</div>'
        f'<div class="card"><div class="card-title">Contact Person</div>{_sender_rows(quotation, ctx.defaults)}</div>'
        '</div>'
    )

    left = []
    payment_terms = _payment_terms_html(ctx)
    if payment_terms:
        left.append(f'<div class="block"><div class="section-title">Payment Terms</div>{payment_terms}</div>')
    terms = _terms_html(ctx)
    if terms:
        left.append(f'<div class="block"><div class="section-title">Terms &amp; Conditions</div>{terms}</div>')
    if quotation.customer_notes:
        left.append(f'<div class="block"><div class="section-title">Notes</div>{_lines(quotation.customer_notes)}</div>')

    signature = ''
    if variables['signature']:
        signature = (
            f'<div class="signature-block">{variables["signature"]}'
            f'<div class="signature-label">For {variables["company_name"]}</div></div>'
        )

    bottom = (
        '<div class="bottom-block">'
        f'<div class="bottom-left">{"".join(left)}</div>'
        f'<div class="bottom-right">{_summary_table(ctx)}{signature}</div>'
        '</div>'
        '<div class="grand-total">'
        f'<span>Grand Total</span><span>{variables["total_amount"]}</span>'
        '</div>'
        f'<div class="amount-words">{variables["amount_in_words"]}</div>'
    )

    return ''.join([
        band, cards, _items_table(ctx), bottom,
        _additional_logos_html(ctx), _footer_html(ctx, layout.footer),
    ])


# Legacy mode

def _legacy_section(ctx, section):
    title = escape(section.title) if section.title else ''
    heading = f'<div class="section-title">{title}</div>' if title else ''

    if section.type == 'client_info':
        body = f'<div class="client-info">{_client_rows(ctx.quotation)}</div>'
    elif section.type == 'items_table':
        body = _items_table(ctx)
    elif section.type == 'summary':
        body = _summary_table(ctx) + f'<div class="amount-words">{ctx.variables["amount_in_words"]}</div>'
    elif section.type == 'terms':
        body = _terms_html(ctx)
        payment_terms = _payment_terms_html(ctx)
        if payment_terms:
            body = f'<div class="payment-terms">{payment_terms}</div>{body}'
        if not body:
            return ''
    elif section.type == 'additional_logos':
        body = _additional_logos_html(ctx)
        if not body:
            return ''
    else:
        body = substitute(section.content, ctx.variables)

    return f'<section class="quotation-section section-{escape(section.type)}">{heading}{body}</section>'


def _render_legacy(ctx, layout):
    parts = []
    if layout.header.show and layout.header.content:
        parts.append(f'<header class="document-header">{substitute(layout.header.content, ctx.variables)}</header>')

    for section in sorted(layout.sections, key=lambda s: s.order):
        if section.is_visible:
            parts.append(_legacy_section(ctx, section))

    parts.append(_footer_html(ctx, layout.footer))
    return ''.join(parts)


# Styles

def compile_styles(styles, page_settings):
    width, height = PAGE_SIZES[page_settings.page_size]
    if page_settings.orientation == 'landscape':
        width, height = height, width
    margins = page_settings.margins
    primary, secondary = styles['primary_color'], styles['secondary_color']
    border = '1px solid #D1D5DB' if styles['table_borders'] else 'none'
    stripe = '#F9FAFB' if styles['alternate_row_colors'] else 'transparent'

    return f"""
@page {{ size: {width} {height}; margin: {margins['top']}px {margins['right']}px {margins['bottom']}px {margins['left']}px; }}
* {{ box-sizing: border-box; color-scheme: light; }}
body {{ margin: 0; padding: 0; background: #ffffff; color: #374151; font-family: {styles['font_family']}; font-size: {styles['font_size']}; line-height: 1.5; }}
.quotation-container {{ max-width: {width}; margin: 0 auto; padding: 16px; }}
.company-logo {{ max-width: 180px; max-height: 70px; object-fit: contain; }}
.title-band {{ display: flex; justify-content: space-between; align-items: center; padding-bottom: 16px; border-bottom: 3px solid {primary}; }}
.brand {{ display: flex; align-items: center; gap: 16px; }}
.brand-name {{ font-size: 22px; font-weight: 700; color: #111827; }}
.brand-tagline {{ color: #6B7280; }}
.meta {{ text-align: right; }}
.doc-label {{ text-transform: uppercase; letter-spacing: 1px; font-weight: 600; }}
.doc-number {{ font-size: 18px; font-weight: 700; color: {primary}; }}
.doc-title {{ font-size: 16px; margin: 16px 0; color: #111827; }}
.card-pair {{ display: flex; gap: 16px; margin: 16px 0; }}
.card, .client-info {{ flex: 1; padding: 12px 16px; border: 1px solid #E5E7EB; border-radius: 6px; background: #F8FAFC; }}
.card-title, .section-title {{ font-weight: 700; color: {primary}; text-transform: uppercase; margin-bottom: 8px; }}
.client-name {{ font-weight: 700; color: #111827; margin-bottom: 4px; }}
.info-row {{ margin-bottom: 2px; }}
.info-label {{ font-weight: 600; margin-right: 6px; }}
.items-table, .summary-table {{ width: 100%; border-collapse: collapse; margin: 12px 0; }}
.items-table th {{ background: {primary}; color: #ffffff; padding: 8px; text-align: left; border: {border}; }}
.items-table td {{ padding: 8px; border: {border}; vertical-align: top; }}
.items-table tbody tr:nth-child(even) td {{ background: {stripe}; }}
.item-description {{ color: #6B7280; font-size: 11px; }}
.num {{ text-align: right; white-space: nowrap; }}
.empty-row {{ text-align: center; color: #9CA3AF; }}
.summary-table td {{ padding: 4px 8px; }}
.total-row td {{ font-weight: 700; border-top: 2px solid {primary}; color: {primary}; }}
.bottom-block {{ display: flex; gap: 24px; margin-top: 12px; }}
.bottom-left {{ flex: 3; }}
.bottom-right {{ flex: 2; }}
.block {{ margin-bottom: 12px; }}
.term-title {{ font-weight: 600; }}
.signature-block {{ margin-top: 24px; text-align: right; }}
.signature-image {{ max-width: 160px; max-height: 60px; }}
.signature-label {{ font-weight: 600; }}
.grand-total {{ display: flex; justify-content: space-between; margin-top: 12px; padding: 10px 16px; background: {secondary}; color: #ffffff; font-size: 16px; font-weight: 700; }}
.amount-words {{ margin-top: 6px; font-style: italic; }}
.additional-logos {{ display: flex; gap: 16px; flex-wrap: wrap; margin-top: 16px; }}
.additional-logo {{ max-height: 48px; max-width: 140px; object-fit: contain; }}
.quotation-section {{ margin-bottom: 20px; }}
.document-footer {{ margin-top: 32px; }}
{styles['custom_css']}
"""


# Emitted after template CSS so custom styles cannot hide the attribution
ATTRIBUTION_CSS = (
    '.qd-attribution { display: block !important; visibility: visible !important; '
    'margin-top: 24px; padding-top: 8px; border-top: 1px solid #E5E7EB; '
    'text-align: center; font-size: 10px; color: #9CA3AF; }'
)


def render(quotation, template, organization_defaults=None):
    """Render `quotation` with `template` into a complete HTML document.

    Raises TemplateNotFound when no template is given and propagates
    InvalidLineItem / InvalidAdjustment from pricing.
    """
    if template is None:
        raise TemplateNotFound()
    defaults = organization_defaults or EMPTY_DEFAULTS

    totals = compute_for_quotation(quotation)
    total = effective_total(quotation, totals)

    styles = resolve_styles(template)
    page_settings = resolve_page_settings(template)
    layout = parse_layout(template)

    ctx = _Context(
        quotation=quotation,
        defaults=defaults,
        totals=totals,
        total=total,
        variables=build_variables(quotation, defaults, total),
        styles=styles,
    )

    if isinstance(layout, FreeformLayout):
        body = _render_legacy(ctx, layout)
    else:
        body = _render_structured(ctx, layout)

    title = escape(f'Quotation {quotation.quotation_number or ""}'.strip())
    return (
        '<!DOCTYPE html>'
        '<html lang="en">'
        '<head>'
        '<meta charset="utf-8" />'
        '<meta name="viewport" content="width=device-width, initial-scale=1" />'
        f'<title>{title}</title>'
        f'<style>{compile_styles(styles, page_settings)}</style>'
        f'<style>{ATTRIBUTION_CSS}</style>'
        '</head>'
        '<body>'
        f'<div class="quotation-container">{body}</div>'
        f'{ATTRIBUTION_HTML}'
        '</body>'
        '</html>'
    )
