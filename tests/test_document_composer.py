import pytest

from config.database import db
from app.models import QuotationSettings
from app.services import document_composer
from app.services.document_composer import ATTRIBUTION_HTML, organization_defaults, render, substitute
from app.services.exceptions import TemplateNotFound


def _between(html, start, end):
    return html.split(start, 1)[1].split(end, 1)[0]


def test_substitute_leaves_unknown_tokens_literal():
    variables = {'client_name': 'Carla'}
    assert substitute('Hi {{ client_name }}, see {{not_a_real_token}}', variables) == (
        'Hi Carla, see {{not_a_real_token}}'
    )


def test_substitute_is_single_pass():
    variables = {'quotation_title': '{{company_name}}', 'company_name': 'Sender'}
    assert substitute('{{quotation_title}}', variables) == '{{company_name}}'


def test_render_without_template_fails(org, make_quotation):
    with pytest.raises(TemplateNotFound):
        render(make_quotation(), None, organization_defaults(org))


def test_quote_to_never_shows_the_sender(org, make_template, make_quotation, solo_contact):
    template = make_template()
    html = render(make_quotation(contact=solo_contact), template, organization_defaults(org))

    quote_to = _between(html, 'Quote To</div>', 'Contact Person</div>')
    assert 'Sam Solo' in quote_to
    assert 'Sender Works Ltd' not in quote_to
    assert 'Company' not in quote_to


def test_quote_to_shows_the_contact_company(org, make_template, make_quotation, company_contact):
    html = render(make_quotation(contact=company_contact), make_template(), organization_defaults(org))
    quote_to = _between(html, 'Quote To</div>', 'Contact Person</div>')
    assert 'Carla Client' in quote_to
    assert 'Client Corp' in quote_to


def test_quote_to_without_contact_is_an_em_dash(org, make_template, make_quotation):
    html = render(make_quotation(), make_template(), organization_defaults(org))
    quote_to = _between(html, 'Quote To</div>', 'Contact Person</div>')
    assert '—' in quote_to
    assert 'Sender Works Ltd' not in quote_to


def test_contact_person_prefers_account_manager(org, user, manager, make_template, make_quotation):
    template = make_template()
    defaults = organization_defaults(org)

    managed = render(make_quotation(account_manager=manager), template, defaults)
    assert 'Max Manager' in _between(managed, 'Contact Person</div>', 'items-table')

    owned = render(make_quotation(), template, defaults)
    assert 'Olivia Owner' in _between(owned, 'Contact Person</div>', 'items-table')

    orphan = make_quotation()
    orphan.creator = None
    db.session.commit()
    fallback = render(orphan, template, defaults)
    assert 'Sender Works Ltd' in _between(fallback, 'Contact Person</div>', 'items-table')


def test_missing_percentages_render_as_em_dash(org, make_template, make_quotation):
    quotation = make_quotation(items=[{'name': 'Consulting', 'quantity': 1, 'unit_price': 500}])
    html = render(quotation, make_template(), organization_defaults(org))
    row = _between(html, '<tbody>', '</tbody>')
    assert row.count('<td class="num">—</td>') == 2
    assert '$500.00' in row


def test_totals_are_recomputed_from_items(org, make_template, make_quotation):
    quotation = make_quotation()
    quotation.total = 1
    html = render(quotation, make_template(), organization_defaults(org))
    assert '$212.40' in html
    assert 'Two Hundred Twelve Dollars and Forty Cents Only' in html


def test_title_is_escaped_not_expanded(org, make_template, make_quotation):
    quotation = make_quotation(title='<b>{{company_name}}</b>')
    html = render(quotation, make_template(), organization_defaults(org))
    assert '&lt;b&gt;{{company_name}}&lt;/b&gt;' in html


def test_legacy_sections_follow_order_and_visibility(org, make_template, make_quotation):
    template = make_template('Freeform', structure='legacy', layout={
        'header': {'show': True, 'content': '<h1>{{company_name}}</h1>'},
        'sections': [
            {'type': 'custom', 'title': 'Second', 'content': '<p>{{not_a_real_token}}</p>', 'order': 2},
            {'type': 'custom', 'title': 'First', 'content': '<p>Dear {{client_name}}</p>', 'order': 1},
            {'type': 'custom', 'title': 'Hidden', 'content': '<p>secret</p>', 'order': 3, 'is_visible': False},
        ],
        'footer': {'show': True, 'content': '<p>{{company_email}}</p>'},
    })
    html = render(make_quotation(), template, organization_defaults(org))

    assert '<h1>Sender Works Ltd</h1>' in html
    assert html.index('First') < html.index('Second')
    assert '{{not_a_real_token}}' in html
    assert 'secret' not in html
    assert '<p>hello@sender.test</p>' in html


def test_legacy_client_section_uses_client_rows(org, make_template, make_quotation, solo_contact):
    template = make_template('Freeform', structure='legacy', layout={
        'sections': [{'type': 'client_info', 'title': 'Bill To'}],
    })
    html = render(make_quotation(contact=solo_contact), template, organization_defaults(org))
    section = _between(html, 'section-client_info', '</section>')
    assert 'Sam Solo' in section
    assert 'Sender Works Ltd' not in section


def test_attribution_is_last_in_body(org, make_template, make_quotation):
    template = make_template(
        layout={'footer': {'show': True, 'content': '<p>Thank you</p>'}},
        styles={'custom_css': '.qd-attribution { display: none; }'},
    )
    html = render(make_quotation(), template, organization_defaults(org))

    assert html.index('Thank you') < html.index(ATTRIBUTION_HTML)
    assert html.endswith(f'{ATTRIBUTION_HTML}</body></html>')
    # Attribution rules come after custom CSS
    assert html.index('display: none') < html.index('display: block !important')


def test_logo_precedence(org, make_template, make_quotation):
    template = make_template()
    defaults = organization_defaults(org)

    override = render(make_quotation(logo_url='https://cdn.test/custom.png'), template, defaults)
    assert 'https://cdn.test/custom.png' in override
    assert 'https://cdn.sender.test/logo.png' not in override

    inherited = render(make_quotation(), template, defaults)
    assert 'src="https://cdn.sender.test/logo.png"' in inherited

    org.logo_url = None
    db.session.commit()
    bare = render(make_quotation(), template, organization_defaults(org))
    assert '<img' not in bare


def test_page_size_is_emitted_in_mm(org, make_template, make_quotation):
    portrait = make_template('Letter', page_settings={'page_size': 'Letter'})
    landscape = make_template('Wide', page_settings={'page_size': 'A4', 'orientation': 'landscape'})
    defaults = organization_defaults(org)
    quotation = make_quotation()

    assert '@page { size: 216mm 279mm;' in render(quotation, portrait, defaults)
    assert '@page { size: 297mm 210mm;' in render(quotation, landscape, defaults)


def test_organization_defaults_prefer_quotation_settings(org):
    db.session.add(QuotationSettings(
        organization_id=org.id, company_name='Sender Trading', payment_terms='Net 15',
    ))
    db.session.commit()
    db.session.refresh(org)

    defaults = organization_defaults(org)
    assert defaults.company_name == 'Sender Trading'
    assert defaults.email == 'hello@sender.test'
    assert defaults.payment_terms == 'Net 15'


def test_empty_defaults_when_organization_missing():
    assert document_composer.organization_defaults(None) is document_composer.EMPTY_DEFAULTS
