"""Seed data for QuoteDesk - demo organization, contacts, templates and a quotation"""
from datetime import datetime, timedelta
from config.database import db
from app.models import (
    Organization, User, Company, Contact, Quotation, QuotationItem, QuotationSettings
)
from app.services.pricing import apply_totals, compute_for_quotation
from app.services.quotation_lifecycle import ensure_access_token
from app.services.template_registry import seed_prebuilt_templates
from app.routes.quotation import get_next_quotation_number


DEMO_ORGANIZATION = 'Demo Company Pvt Ltd'


def seed_quotation_settings(org_id):
    """Create default quotation settings for an organization"""
    print(f"Seeding quotation settings for organization {org_id}...")

    existing = QuotationSettings.query.filter_by(organization_id=org_id).first()
    if not existing:
        settings = QuotationSettings(
            organization_id=org_id,
            quotation_prefix='QUO-',
            default_currency='INR',
            validity_days=30,
            payment_terms='50% advance, balance on delivery',
            terms_and_conditions=(
                'Prices are valid for the period stated on this quotation.\n'
                'Delivery within 3 weeks of order confirmation.'
            ),
        )
        db.session.add(settings)

    db.session.commit()
    print("Quotation settings created")


def seed_contacts(org_id):
    """A contact with a company and one without"""
    print(f"Seeding contacts for organization {org_id}...")

    if Contact.query.filter_by(organization_id=org_id).count():
        print("Contacts already exist")
        return

    company = Company(
        organization_id=org_id,
        name='Acme Industries',
        email='purchase@acme.example.com',
        phone='+91 80 4000 1000',
        address='42 Industrial Area, Peenya, Bangalore',
    )
    db.session.add(company)
    db.session.flush()

    db.session.add_all([
        Contact(
            organization_id=org_id,
            company_id=company.id,
            first_name='Priya',
            last_name='Sharma',
            designation='Purchase Manager',
            email='priya@acme.example.com',
            phone='+91 98450 12345',
            city='Bangalore',
            country='India',
        ),
        Contact(
            organization_id=org_id,
            first_name='Rahul',
            last_name='Verma',
            email='rahul.verma@example.com',
            phone='+91 99000 54321',
            city='Mysore',
            country='India',
        ),
    ])
    db.session.commit()
    print("Contacts created")


def seed_demo_quotation(org_id, creator):
    print(f"Seeding demo quotation for organization {org_id}...")

    if Quotation.query.filter_by(organization_id=org_id).count():
        print("Quotations already exist")
        return

    contact = Contact.query.filter_by(organization_id=org_id).order_by(Contact.id).first()
    today = datetime.utcnow().date()

    quotation = Quotation(
        organization_id=org_id,
        quotation_number=get_next_quotation_number(org_id, 'QUO-', today),
        title='Office network upgrade',
        issue_date=today,
        valid_until=today + timedelta(days=30),
        contact=contact,
        creator=creator,
        currency='INR',
        discount_type='percentage',
        discount_value=0,
        tax_name='GST',
        tax_percentage=None,
        shipping_charges=0,
        other_charges=0,
        status='draft',
        items=[
            QuotationItem(line_number=1, name='Managed switch, 24 port', quantity=2,
                          unit_price=100, discount_percent=10, tax_percent=18),
            QuotationItem(line_number=2, name='Installation', quantity=1,
                          unit_price=5000, tax_percent=18),
        ],
    )
    apply_totals(quotation, compute_for_quotation(quotation))
    ensure_access_token(quotation)

    db.session.add(quotation)
    db.session.commit()
    print(f"Demo quotation {quotation.quotation_number} created")


def create_demo_organization():
    """Create a demo organization with an admin user"""
    print("Creating demo organization...")

    existing = Organization.query.filter_by(name=DEMO_ORGANIZATION).first()
    if existing:
        print("Demo organization already exists, seeding missing data...")
        seed_quotation_settings(existing.id)
        seed_contacts(existing.id)
        seed_prebuilt_templates(existing.id)
        return existing

    org = Organization(
        name=DEMO_ORGANIZATION,
        legal_name='Demo Company Private Limited',
        tagline='Networks that just work',
        email='admin@demo.com',
        phone='+91 9876543210',
        website='https://demo.example.com',
        address='123 Demo Street, Bangalore 560001',
        currency='INR',
        timezone='Asia/Kolkata',
        is_active=True
    )
    db.session.add(org)
    db.session.flush()

    admin = User(
        organization_id=org.id,
        email='admin@demo.com',
        first_name='Admin',
        last_name='User',
        designation='Sales Head',
        phone='+91 9876543210',
        is_active=True
    )
    db.session.add(admin)
    db.session.commit()

    seed_quotation_settings(org.id)
    seed_contacts(org.id)
    seed_prebuilt_templates(org.id, creator_id=admin.id)
    seed_demo_quotation(org.id, admin)

    print(f"Demo organization created with ID: {org.id}")
    return org


def run_all_seeds():
    """Run all seed functions"""
    print("=" * 50)
    print("Starting QuoteDesk Database Seeding")
    print("=" * 50)

    org = create_demo_organization()

    print("=" * 50)
    print("Seeding completed successfully!")
    print("=" * 50)

    return org


if __name__ == '__main__':
    from app import create_app
    app = create_app()
    with app.app_context():
        db.create_all()
        run_all_seeds()
