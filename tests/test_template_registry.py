import pytest
from sqlalchemy.exc import IntegrityError

from config.database import db
from app.models import Quotation, QuotationTemplate
from app.services import template_registry
from app.services.exceptions import (
    CannotDeleteDefault, DefaultTemplateConflict, DefaultTemplateRequired, InvalidTemplate, InvariantViolation,
    TemplateNotFound,
)


def _defaults(org_id):
    return QuotationTemplate.query.filter_by(organization_id=org_id, is_default=True).all()


def test_first_template_becomes_default(org, make_template):
    first = make_template('First')
    second = make_template('Second')
    assert first.is_default is True
    assert second.is_default is False
    assert _defaults(org.id) == [first]


def test_set_default_moves_the_flag(org, make_template):
    a = make_template('A')
    b = make_template('B')

    template_registry.set_default(org.id, b.id)

    db.session.refresh(a)
    db.session.refresh(b)
    assert a.is_default is False
    assert b.is_default is True
    assert len(_defaults(org.id)) == 1

    with pytest.raises(CannotDeleteDefault):
        template_registry.delete_template(org.id, b.id)


@pytest.mark.parametrize('failure', [
    DefaultTemplateConflict(default_count=0),
    IntegrityError('UPDATE quotation_templates', {}, Exception('UNIQUE constraint failed')),
])
def test_failed_default_switch_keeps_the_previous_default(org, make_template, monkeypatch, failure):
    a = make_template('A')
    b = make_template('B')

    def clear_then_fail(organization_id, template):
        QuotationTemplate.query.filter_by(id=a.id).update({'is_default': False})
        db.session.flush()
        raise failure

    monkeypatch.setattr(template_registry, '_make_default', clear_then_fail)
    with pytest.raises(DefaultTemplateConflict):
        template_registry.set_default(org.id, b.id)

    assert _defaults(org.id) == [a]
    db.session.refresh(b)
    assert b.is_default is False


def test_create_with_is_default_switches_default(org, make_template):
    a = make_template('A')
    b = make_template('B', is_default=True)
    db.session.refresh(a)
    assert a.is_default is False
    assert b.is_default is True
    assert len(_defaults(org.id)) == 1


def test_unsetting_default_via_update_is_refused(org, make_template):
    a = make_template('A')
    with pytest.raises(DefaultTemplateRequired):
        template_registry.update_template(org.id, a.id, {'is_default': False})


def test_update_with_is_default_delegates_to_set_default(org, make_template):
    a = make_template('A')
    b = make_template('B')
    template_registry.update_template(org.id, b.id, {'is_default': True, 'description': 'Now default'})
    db.session.refresh(a)
    assert a.is_default is False
    assert template_registry.resolve_template(org.id).id == b.id


def test_list_puts_default_first_then_by_name(org, make_template):
    make_template('Zeta')
    make_template('Alpha')
    make_template('Mid')
    names = [t.name for t in template_registry.list_templates(org.id)]
    assert names == ['Zeta', 'Alpha', 'Mid']


def test_duplicate_copies_everything_but_identity_and_default(org, make_template):
    source = make_template('Branded', styles={'primary_color': '#112233'})
    copy = template_registry.duplicate_template(org.id, source.id)

    assert copy.id != source.id
    assert copy.name == 'Branded (Copy)'
    assert copy.is_default is False
    assert copy.styles == source.styles
    assert copy.layout == source.layout


def test_delete_non_default_releases_quotations(org, make_template, make_quotation):
    make_template('Default')
    other = make_template('Other')
    quotation = make_quotation(template_id=other.id)

    template_registry.delete_template(org.id, other.id)

    assert db.session.get(QuotationTemplate, other.id) is None
    assert db.session.get(Quotation, quotation.id).template_id is None


def test_resolve_explicit_missing_id_does_not_fall_back(org, make_template):
    make_template('Default')
    with pytest.raises(TemplateNotFound):
        template_registry.resolve_template(org.id, 9999)


def test_resolve_without_templates_raises(org):
    with pytest.raises(TemplateNotFound):
        template_registry.resolve_template(org.id)


def test_templates_are_organization_scoped(org, other_org, make_template):
    template = make_template('Mine')
    with pytest.raises(TemplateNotFound):
        template_registry.get_template(other_org.id, template.id)


def test_two_stored_defaults_are_an_invariant_violation(org, make_template):
    make_template('A')
    b = make_template('B')
    # Write a second default behind the registry's back
    db.session.execute(db.text('DROP INDEX uq_quotation_template_default'))
    db.session.execute(
        db.text('UPDATE quotation_templates SET is_default = 1 WHERE id = :id'), {'id': b.id}
    )
    db.session.commit()

    with pytest.raises(InvariantViolation):
        template_registry.resolve_template(org.id)


def test_database_rejects_a_second_default(org, make_template):
    make_template('A')
    b = make_template('B')
    with pytest.raises(IntegrityError):
        db.session.execute(
            db.text('UPDATE quotation_templates SET is_default = 1 WHERE id = :id'), {'id': b.id}
        )
        db.session.flush()
    db.session.rollback()


def test_template_html_is_sanitized(org, make_template):
    template = make_template('Legacy', structure='legacy', layout={
        'header': {'show': True, 'content': '<h1 onclick="x()">{{company_name}}</h1><script>alert(1)</script>'},
        'sections': [{'type': 'custom', 'title': 'Intro', 'content': '<p>Hello {{client_name}}</p>'}],
    })
    header = template.layout['header']['content']
    assert '<script>' not in header
    assert 'onclick' not in header
    assert '{{company_name}}' in header
    assert template.layout['sections'][0]['content'] == '<p>Hello {{client_name}}</p>'


@pytest.mark.parametrize('data', [
    {'name': ''},
    {'name': 'Bad colour', 'styles': {'primary_color': 'red;}</style>'}},
    {'name': 'Bad structure', 'styles': {'structure': 'fancy'}},
    {'name': 'Bad page', 'page_settings': {'page_size': 'A0'}},
    {'name': 'Bad section', 'layout': {'sections': [{'title': 'no type'}]}},
])
def test_invalid_template_data_is_rejected(org, data):
    with pytest.raises(InvalidTemplate):
        template_registry.create_template(org.id, data)


def test_seed_installs_prebuilt_once(org):
    created = template_registry.seed_prebuilt_templates(org.id)
    assert [t.name for t in created] == ['Classic', 'Corporate Blue', 'Minimal']
    assert created[0].is_default is True
    assert created[0].styles['structure'] == 'structured'
    assert created[1].styles['structure'] == 'legacy'

    assert template_registry.seed_prebuilt_templates(org.id) == []
    assert QuotationTemplate.query.filter_by(organization_id=org.id).count() == 3
