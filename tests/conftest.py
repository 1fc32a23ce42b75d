from datetime import date, timedelta

import pytest
from flask_jwt_extended import create_access_token

from app import create_app
from app.models import Company, Contact, Organization, Quotation, QuotationItem, User
from app.services import template_registry
from app.services.pricing import apply_totals, compute_for_quotation
from app.services.quotation_lifecycle import ensure_access_token
from config.config import TestingConfig
from config.database import db


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def org(app):
    org = Organization(
        name='Sender Works Ltd',
        tagline='Quality since 1999',
        email='hello@sender.test',
        phone='+1 555 0100',
        website='https://sender.test',
        address='1 Sender Road',
        logo_url='https://cdn.sender.test/logo.png',
        currency='USD',
    )
    db.session.add(org)
    db.session.commit()
    return org


@pytest.fixture
def other_org(app):
    org = Organization(name='Someone Else Inc', currency='USD')
    db.session.add(org)
    db.session.commit()
    return org


@pytest.fixture
def user(org):
    user = User(
        organization_id=org.id,
        email='owner@sender.test',
        first_name='Olivia',
        last_name='Owner',
        designation='Sales Lead',
        phone='+1 555 0101',
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def manager(org):
    manager = User(
        organization_id=org.id,
        email='manager@sender.test',
        first_name='Max',
        last_name='Manager',
        designation='Account Manager',
    )
    db.session.add(manager)
    db.session.commit()
    return manager


@pytest.fixture
def company_contact(org):
    company = Company(organization_id=org.id, name='Client Corp', address='9 Client Street')
    db.session.add(company)
    db.session.flush()
    contact = Contact(
        organization_id=org.id,
        company_id=company.id,
        first_name='Carla',
        last_name='Client',
        email='carla@client.test',
        phone='+1 555 0200',
    )
    db.session.add(contact)
    db.session.commit()
    return contact


@pytest.fixture
def solo_contact(org):
    contact = Contact(
        organization_id=org.id,
        first_name='Sam',
        last_name='Solo',
        email='sam@solo.test',
    )
    db.session.add(contact)
    db.session.commit()
    return contact


@pytest.fixture
def auth_headers(user, org):
    token = create_access_token(identity=str(user.id), additional_claims={'organization_id': org.id})
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def make_template(org):
    def _make(name='Standard', structure='structured', **data):
        data.setdefault('styles', {})
        data['styles'] = dict(data['styles'], structure=structure)
        return template_registry.create_template(org.id, dict(data, name=name))
    return _make


@pytest.fixture
def make_quotation(org, user):
    counter = {'n': 0}

    def _make(status='draft', valid_until=None, contact=None, items=None, **fields):
        counter['n'] += 1
        today = date.today()
        quotation = Quotation(
            organization_id=org.id,
            quotation_number=f'QUO-TEST-{counter["n"]:04}',
            title=fields.pop('title', 'Network upgrade'),
            issue_date=today,
            valid_until=valid_until or today + timedelta(days=30),
            contact=contact,
            creator=user,
            currency=fields.pop('currency', 'USD'),
            discount_type='percentage',
            discount_value=0,
            shipping_charges=0,
            other_charges=0,
            status=status,
            additional_logos=[],
            **fields
        )
        if items is None:
            items = [dict(name='Switch', quantity=2, unit_price=100, discount_percent=10, tax_percent=18)]
        quotation.items = [QuotationItem(line_number=i, **item) for i, item in enumerate(items, start=1)]
        apply_totals(quotation, compute_for_quotation(quotation))
        ensure_access_token(quotation)
        db.session.add(quotation)
        db.session.commit()
        return quotation
    return _make
