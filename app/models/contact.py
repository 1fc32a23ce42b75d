"""Client-side party models for QuoteDesk.

Contacts and companies are maintained by the CRM; the quotation engine
only reads them when rendering the "quote to" side of a document.
"""
from datetime import datetime
from config.database import db


class Company(db.Model):
    """Client company a contact belongs to"""
    __tablename__ = 'companies'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)

    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(100))
    phone = db.Column(db.String(20))
    website = db.Column(db.String(200))
    address = db.Column(db.Text)
    tax_id = db.Column(db.String(50))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    contacts = db.relationship('Contact', backref='company', lazy='dynamic')

    __table_args__ = (
        db.Index('ix_companies_org_name', 'organization_id', 'name'),
    )

    def __repr__(self):
        return f'<Company {self.name}>'


class Contact(db.Model):
    """Person a quotation is addressed to"""
    __tablename__ = 'contacts'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)
    company_id = db.Column(db.Integer, db.ForeignKey('companies.id'))

    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100))
    designation = db.Column(db.String(100))

    email = db.Column(db.String(100))
    phone = db.Column(db.String(20))
    whatsapp_number = db.Column(db.String(20))

    address = db.Column(db.String(300))
    city = db.Column(db.String(100))
    state = db.Column(db.String(100))
    country = db.Column(db.String(100))
    pincode = db.Column(db.String(10))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index('ix_contacts_org_name', 'organization_id', 'first_name'),
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name or ''}".strip()

    @property
    def full_address(self):
        parts = [self.address, self.city, self.state, self.pincode, self.country]
        return ', '.join(p for p in parts if p)

    def __repr__(self):
        return f'<Contact {self.full_name}>'
