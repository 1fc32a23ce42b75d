"""Quotation template model for QuoteDesk"""
from datetime import datetime
from config.database import db


class QuotationTemplate(db.Model):
    """Presentation template for quotations (layout + styles)"""
    __tablename__ = 'quotation_templates'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500))

    # header{show,height,content}, footer{show,height,content},
    # sections[{id,type,title,content,order,is_visible}]
    layout = db.Column(db.JSON, default=dict)

    # primary_color, secondary_color, font_family, font_size, table_borders,
    # alternate_row_colors, custom_css, structure (structured | legacy)
    styles = db.Column(db.JSON, default=dict)

    # page_size, orientation, margins{top,right,bottom,left}
    page_settings = db.Column(db.JSON, default=dict)

    is_default = db.Column(db.Boolean, default=False, nullable=False)

    preview_image_url = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'))

    __table_args__ = (
        db.Index('idx_quotation_template_org', 'organization_id', 'name'),
        # At most one default per organization, enforced by the database
        db.Index(
            'uq_quotation_template_default', 'organization_id', unique=True,
            sqlite_where=db.text('is_default = 1'),
            postgresql_where=db.text('is_default'),
        ),
    )

    def __repr__(self):
        return f'<QuotationTemplate {self.name}>'
