"""Organization models for QuoteDesk"""
from datetime import datetime
from config.database import db


class Organization(db.Model):
    """Multi-tenant organization/company model"""
    __tablename__ = 'organizations'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    legal_name = db.Column(db.String(200))
    tagline = db.Column(db.String(200))

    # Contact Information
    email = db.Column(db.String(120))
    phone = db.Column(db.String(20))
    website = db.Column(db.String(200))
    address = db.Column(db.Text)

    # Branding
    logo_url = db.Column(db.String(500))
    additional_logos = db.Column(db.JSON, default=list)

    # Currency & Locale
    currency = db.Column(db.String(3), default='USD')
    timezone = db.Column(db.String(50), default='UTC')

    # Status
    is_active = db.Column(db.Boolean, default=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    users = db.relationship('User', backref='organization', lazy='dynamic')
    quotation_settings = db.relationship('QuotationSettings', backref='organization', uselist=False)

    def __repr__(self):
        return f'<Organization {self.name}>'
