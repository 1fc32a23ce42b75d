from datetime import datetime
from config.database import db


class QuotationSettings(db.Model):
    """Organization-wide quotation defaults"""
    __tablename__ = 'quotation_settings'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False, unique=True)

    # Numbering & defaults
    quotation_prefix = db.Column(db.String(10), default='QUO-')
    default_currency = db.Column(db.String(3), default='USD')
    validity_days = db.Column(db.Integer, default=30)

    # Default document text
    terms_and_conditions = db.Column(db.Text)
    payment_terms = db.Column(db.Text)

    # Branding
    digital_signature_url = db.Column(db.String(500))

    # Sender details printed on documents; blank fields fall back to the organization
    company_name = db.Column(db.String(200))
    company_address = db.Column(db.Text)
    company_phone = db.Column(db.String(20))
    company_email = db.Column(db.String(120))
    company_website = db.Column(db.String(200))
    tax_id = db.Column(db.String(50))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SequenceNumber(db.Model):
    """Sequence numbers for documents"""
    __tablename__ = 'sequence_numbers'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)

    document_type = db.Column(db.String(30), nullable=False)
    period = db.Column(db.String(6), nullable=False)  # YYYYMM

    prefix = db.Column(db.String(20))
    current_number = db.Column(db.Integer, default=0)
    number_length = db.Column(db.Integer, default=4)

    last_generated_at = db.Column(db.DateTime)

    __table_args__ = (
        db.UniqueConstraint('organization_id', 'document_type', 'period', name='uq_sequence_number'),
    )

    def get_next_number(self):
        """Generate next number in sequence, e.g. QUO-202610-0007"""
        self.current_number = (self.current_number or 0) + 1
        self.last_generated_at = datetime.utcnow()

        number_str = str(self.current_number).zfill(self.number_length)
        return f"{self.prefix or ''}{self.period}-{number_str}"
