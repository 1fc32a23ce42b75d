"""Activity Logging Service for QuoteDesk"""
from flask import current_app, g, has_request_context, request
from config.database import db
from app.models.audit import ActivityLog, AuditLog


class ActivityType:
    """Activity type constants"""
    # CRUD operations
    CREATE = 'create'
    UPDATE = 'update'
    DELETE = 'delete'
    VIEW = 'view'

    # Quotation lifecycle
    SEND = 'send'
    APPROVE = 'approve'
    REJECT = 'reject'
    REOPEN = 'reopen'
    EXPIRE = 'expire'
    COMMENT = 'comment'

    # Templates
    DUPLICATE = 'duplicate'
    SET_DEFAULT = 'set_default'


class EntityType:
    """Entity type constants"""
    ORGANIZATION = 'organization'
    QUOTATION = 'quotation'
    QUOTATION_TEMPLATE = 'quotation_template'
    QUOTATION_SETTINGS = 'quotation_settings'


def get_client_info():
    """Extract client information from request"""
    if not has_request_context():
        return None, None

    ip_address = request.headers.get('X-Forwarded-For', request.remote_addr)
    if ip_address and ',' in ip_address:
        ip_address = ip_address.split(',')[0].strip()

    user_agent = request.headers.get('User-Agent', '')[:500]

    return ip_address, user_agent


def _current_user():
    if has_request_context():
        return getattr(g, 'current_user', None)
    return None


def log_activity(
    activity_type: str,
    description: str,
    entity_type: str = None,
    entity_id: int = None,
    entity_number: str = None,
    extra_data: dict = None,
    organization_id: int = None,
    commit: bool = True
):
    """
    Log a business activity.

    Args:
        activity_type: Type of activity (use ActivityType constants)
        description: Human-readable description of the activity
        entity_type: Type of entity being acted upon (use EntityType constants)
        entity_id: ID of the entity
        entity_number: Display number of the entity (e.g., quotation number)
        extra_data: Additional context data as dict
        organization_id: Override org ID (uses current org if not provided)
        commit: Commit immediately; pass False to join the caller's transaction

    Activity logging never breaks the action being logged: failures are
    reported to the application log and rolled back.
    """
    try:
        ip_address, user_agent = get_client_info()
        user = _current_user()

        if organization_id is None and has_request_context():
            organization_id = getattr(g, 'organization_id', None)

        log = ActivityLog(
            organization_id=organization_id,
            user_id=user.id if user else None,
            user_name=user.full_name if user else None,
            activity_type=activity_type,
            description=description,
            entity_type=entity_type,
            entity_id=entity_id,
            entity_number=entity_number,
            extra_data=extra_data or {},
            ip_address=ip_address,
            user_agent=user_agent
        )

        db.session.add(log)
        if commit:
            db.session.commit()

        return log

    except Exception:
        if commit:
            db.session.rollback()
        current_app.logger.exception('Activity logging failed for %s %s', entity_type, entity_id)
        return None


def log_audit(
    table_name: str,
    record_id: int,
    action: str,
    old_values: dict = None,
    new_values: dict = None,
    organization_id: int = None
):
    """
    Add an audit trail entry for a data change to the current session.

    The caller commits; the entry is written together with the change.
    """
    ip_address, user_agent = get_client_info()

    changed_fields = []
    if old_values and new_values:
        all_keys = set(list(old_values.keys()) + list(new_values.keys()))
        for key in sorted(all_keys):
            if old_values.get(key) != new_values.get(key):
                changed_fields.append(key)

    user = _current_user()
    if organization_id is None and has_request_context():
        organization_id = getattr(g, 'organization_id', None)

    log = AuditLog(
        organization_id=organization_id,
        user_id=user.id if user else None,
        user_email=user.email if user else None,
        user_name=user.full_name if user else None,
        table_name=table_name,
        record_id=record_id,
        action=action,
        old_values=old_values,
        new_values=new_values,
        changed_fields=changed_fields if changed_fields else None,
        ip_address=ip_address,
        user_agent=user_agent
    )

    db.session.add(log)
    return log
