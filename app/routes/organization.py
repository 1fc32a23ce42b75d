"""Organization routes for QuoteDesk"""
from flask import Blueprint, current_app, g
from datetime import datetime
from config.database import db
from app.models import Organization, QuotationSettings
from app.utils.security import jwt_required_with_user, sanitize_string
from app.utils.helpers import success_response, error_response, get_request_json, model_to_dict
from app.services.activity_logger import log_activity, log_audit, ActivityType, EntityType
from app.services.formatting import CURRENCY_FORMATS

organization_bp = Blueprint('organization', __name__)


def get_or_create_quotation_settings(org_id):
    settings = QuotationSettings.query.filter_by(organization_id=org_id).first()
    if not settings:
        settings = QuotationSettings(
            organization_id=org_id,
            quotation_prefix=current_app.config['QUOTATION_NUMBER_PREFIX'],
            default_currency=current_app.config['DEFAULT_CURRENCY'],
            validity_days=current_app.config['QUOTATION_VALIDITY_DAYS'],
        )
        db.session.add(settings)
        db.session.flush()
    return settings


@organization_bp.route('', methods=['GET'])
@jwt_required_with_user()
def get_organization():
    """Get current organization details"""
    org = db.session.get(Organization, g.organization_id)
    if not org:
        return error_response('Organization not found', status_code=404)

    return success_response(model_to_dict(org, exclude=['created_at', 'updated_at']))


@organization_bp.route('', methods=['PUT'])
@jwt_required_with_user()
def update_organization():
    """Update organization branding and contact details"""
    org = db.session.get(Organization, g.organization_id)
    if not org:
        return error_response('Organization not found', status_code=404)

    data = get_request_json()
    old_values = model_to_dict(org)

    updateable = [
        'name', 'legal_name', 'tagline', 'email', 'phone', 'website', 'address',
        'logo_url', 'additional_logos', 'currency', 'timezone'
    ]

    if 'name' in data and not sanitize_string(data.get('name') or ''):
        return error_response('Organization name is required')
    if 'currency' in data and data['currency'] not in CURRENCY_FORMATS:
        return error_response('Unsupported currency')
    if 'additional_logos' in data and not isinstance(data['additional_logos'], list):
        return error_response('additional_logos must be a list of image URLs')

    for field in updateable:
        if field in data:
            value = data[field]
            if isinstance(value, str):
                value = sanitize_string(value)
            setattr(org, field, value)

    org.updated_at = datetime.utcnow()

    log_audit('organizations', org.id, 'UPDATE', old_values, model_to_dict(org))
    log_activity(
        activity_type=ActivityType.UPDATE,
        entity_type=EntityType.ORGANIZATION,
        entity_id=org.id,
        description="Updated organization details",
        commit=False
    )
    db.session.commit()

    return success_response(model_to_dict(org), 'Organization updated')


@organization_bp.route('/quotation-settings', methods=['GET'])
@jwt_required_with_user()
def get_quotation_settings():
    """Get quotation defaults (numbering, validity, terms, sender details)"""
    settings = get_or_create_quotation_settings(g.organization_id)
    db.session.commit()
    return success_response(model_to_dict(settings))


@organization_bp.route('/quotation-settings', methods=['PUT'])
@jwt_required_with_user()
def update_quotation_settings():
    """Update quotation defaults"""
    settings = get_or_create_quotation_settings(g.organization_id)
    data = get_request_json()
    old_values = model_to_dict(settings)

    if 'validity_days' in data:
        try:
            validity_days = int(data['validity_days'])
        except (TypeError, ValueError):
            return error_response('validity_days must be a whole number')
        if not 1 <= validity_days <= 365:
            return error_response('validity_days must be between 1 and 365')
        data['validity_days'] = validity_days

    if 'default_currency' in data and data['default_currency'] not in CURRENCY_FORMATS:
        return error_response('Unsupported currency')

    if 'quotation_prefix' in data:
        prefix = sanitize_string(data['quotation_prefix'] or '')
        if not prefix or len(prefix) > 10:
            return error_response('quotation_prefix must be 1 to 10 characters')

    updateable = [
        'quotation_prefix', 'default_currency', 'validity_days',
        'terms_and_conditions', 'payment_terms', 'digital_signature_url',
        'company_name', 'company_address', 'company_phone', 'company_email', 'company_website',
        'tax_id'
    ]

    for field in updateable:
        if field in data:
            value = data[field]
            if isinstance(value, str):
                value = sanitize_string(value)
            setattr(settings, field, value)

    settings.updated_at = datetime.utcnow()

    log_audit('quotation_settings', settings.id, 'UPDATE', old_values, model_to_dict(settings))
    log_activity(
        activity_type=ActivityType.UPDATE,
        entity_type=EntityType.QUOTATION_SETTINGS,
        entity_id=settings.id,
        description="Updated quotation settings",
        commit=False
    )
    db.session.commit()

    return success_response(model_to_dict(settings), 'Quotation settings updated')
