"""Audit models for QuoteDesk"""
from datetime import datetime
from config.database import db


class AuditLog(db.Model):
    """Audit log for tracking data changes"""
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    user_email = db.Column(db.String(120))
    user_name = db.Column(db.String(200))

    table_name = db.Column(db.String(100), nullable=False)
    record_id = db.Column(db.Integer, nullable=False)
    action = db.Column(db.String(20), nullable=False)

    old_values = db.Column(db.JSON)
    new_values = db.Column(db.JSON)
    changed_fields = db.Column(db.JSON)

    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        db.Index('idx_audit_table_record', 'organization_id', 'table_name', 'record_id'),
    )

    def __repr__(self):
        return f'<AuditLog {self.action} on {self.table_name}:{self.record_id}>'


class ActivityLog(db.Model):
    """Activity log for business events (sends, approvals, views)"""
    __tablename__ = 'activity_logs'

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False)

    # Empty for actions taken through a public share link
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    user_name = db.Column(db.String(200))

    activity_type = db.Column(db.String(50), nullable=False)
    description = db.Column(db.String(500), nullable=False)

    entity_type = db.Column(db.String(50))
    entity_id = db.Column(db.Integer)
    entity_number = db.Column(db.String(50))

    extra_data = db.Column(db.JSON, default=dict)

    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        db.Index('idx_activity_type', 'organization_id', 'activity_type'),
        db.Index('idx_activity_entity', 'organization_id', 'entity_type', 'entity_id'),
    )

    def __repr__(self):
        return f'<ActivityLog {self.activity_type}>'
