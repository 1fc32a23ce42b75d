from datetime import datetime
from config.database import db


class Quotation(db.Model):
    """Quotation/Estimate model"""
    __tablename__ = 'quotations'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)

    # Quotation Details
    quotation_number = db.Column(db.String(30), nullable=False)
    title = db.Column(db.String(300), nullable=False)
    issue_date = db.Column(db.Date, nullable=False)

    # Validity
    valid_until = db.Column(db.Date, nullable=False)

    # Client side
    contact_id = db.Column(db.Integer, db.ForeignKey('contacts.id'))

    # Sender side
    creator_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    account_manager_id = db.Column(db.Integer, db.ForeignKey('users.id'))

    # Amounts
    subtotal = db.Column(db.Numeric(18, 3), default=0)
    discount_type = db.Column(db.String(10), default='percentage')  # percentage, fixed
    discount_value = db.Column(db.Numeric(18, 3), default=0)
    discount_amount = db.Column(db.Numeric(18, 3), default=0)

    # Tax
    tax_name = db.Column(db.String(50), default='Tax')
    tax_percentage = db.Column(db.Numeric(5, 2))
    tax_amount = db.Column(db.Numeric(18, 3), default=0)

    # Other Charges
    shipping_charges = db.Column(db.Numeric(18, 3), default=0)
    other_charges = db.Column(db.Numeric(18, 3), default=0)
    charges = db.Column(db.Numeric(18, 3), default=0)

    # Total
    total = db.Column(db.Numeric(18, 3), default=0)
    total_is_manual_override = db.Column(db.Boolean, default=False, nullable=False)
    manual_total = db.Column(db.Numeric(18, 3))
    amount_in_words = db.Column(db.String(500))

    # Currency
    currency = db.Column(db.String(3), default='USD')

    # Status
    status = db.Column(db.String(20), default='draft', nullable=False)  # draft, sent, approved, rejected, expired

    # Public share link
    public_access_token = db.Column(db.String(128), unique=True)

    # Presentation
    template_id = db.Column(db.Integer, db.ForeignKey('quotation_templates.id', ondelete='SET NULL'))
    logo_url = db.Column(db.String(500))
    signature_url = db.Column(db.String(500))
    additional_logos = db.Column(db.JSON, default=list)

    # Notes
    payment_terms = db.Column(db.Text)
    notes = db.Column(db.Text)  # Internal notes
    customer_notes = db.Column(db.Text)  # Visible to customer

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    sent_at = db.Column(db.DateTime)
    approved_at = db.Column(db.DateTime)
    rejected_at = db.Column(db.DateTime)
    rejection_reason = db.Column(db.String(500))
    expired_at = db.Column(db.DateTime)
    last_viewed_at = db.Column(db.DateTime)

    # Relationships
    contact = db.relationship('Contact')
    creator = db.relationship('User', foreign_keys=[creator_id])
    account_manager = db.relationship('User', foreign_keys=[account_manager_id])
    template = db.relationship('QuotationTemplate')
    items = db.relationship('QuotationItem', backref='quotation', order_by='QuotationItem.line_number',
                            cascade='all, delete-orphan')
    terms = db.relationship('QuotationTerms', backref='quotation', order_by='QuotationTerms.display_order',
                            cascade='all, delete-orphan')
    history = db.relationship('QuotationHistory', backref='quotation', order_by='QuotationHistory.id',
                              cascade='all, delete-orphan')

    __table_args__ = (
        db.UniqueConstraint('organization_id', 'quotation_number', name='uq_quotation_number'),
        db.Index('idx_quotation_contact', 'organization_id', 'contact_id'),
        db.Index('idx_quotation_status', 'organization_id', 'status'),
    )

    def __repr__(self):
        return f'<Quotation {self.quotation_number}>'


class QuotationItem(db.Model):
    """Quotation line items"""
    __tablename__ = 'quotation_items'

    id = db.Column(db.Integer, primary_key=True)
    quotation_id = db.Column(db.Integer, db.ForeignKey('quotations.id'), nullable=False)

    line_number = db.Column(db.Integer, default=1)

    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)

    quantity = db.Column(db.Numeric(15, 3), nullable=False)
    unit_price = db.Column(db.Numeric(18, 3), nullable=False)
    discount_percent = db.Column(db.Numeric(5, 2))
    tax_percent = db.Column(db.Numeric(5, 2))

    # Final amount including discount and tax
    total = db.Column(db.Numeric(18, 3), default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<QuotationItem {self.name}>'


class QuotationTerms(db.Model):
    """Terms and conditions for quotation"""
    __tablename__ = 'quotation_terms'

    id = db.Column(db.Integer, primary_key=True)
    quotation_id = db.Column(db.Integer, db.ForeignKey('quotations.id'), nullable=False)

    title = db.Column(db.String(200))
    description = db.Column(db.Text, nullable=False)
    display_order = db.Column(db.Integer, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class QuotationHistory(db.Model):
    """Approval, rejection and comment trail of a quotation"""
    __tablename__ = 'quotation_history'

    id = db.Column(db.Integer, primary_key=True)
    quotation_id = db.Column(db.Integer, db.ForeignKey('quotations.id'), nullable=False)

    status = db.Column(db.String(20), nullable=False)  # resulting status, or 'comment'
    comment = db.Column(db.Text)

    # Set for management actions; public actions only carry a name/email
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    actor_name = db.Column(db.String(200))
    actor_email = db.Column(db.String(120))
    via_public_link = db.Column(db.Boolean, default=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<QuotationHistory {self.status}>'
