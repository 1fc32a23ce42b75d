"""Quotation routes for QuoteDesk"""
from flask import Blueprint, current_app, g, request
from datetime import datetime, timedelta
from config.database import db
from app.models import (
    Quotation, QuotationItem, QuotationTerms, Contact, User, Organization, SequenceNumber
)
from app.utils.security import jwt_required_with_user, sanitize_string
from app.utils.helpers import (
    success_response, error_response, html_response, get_request_json,
    paginate, get_filters, apply_sorting, model_to_dict, parse_date
)
from app.services.activity_logger import log_activity, log_audit, ActivityType, EntityType
from app.services.exceptions import InvalidLineItem, InvalidTransition, QuotationExpired, QuotationNotFound
from app.services.formatting import CURRENCY_FORMATS, to_decimal
from app.services.pricing import apply_totals, compute_for_quotation, validate_item
from app.services import document_composer, quotation_lifecycle, template_registry
from app.services.quotation_lifecycle import QuotationStatus, effective_status
from app.routes.organization import get_or_create_quotation_settings

quotation_bp = Blueprint('quotation', __name__)


def get_next_quotation_number(org_id, prefix, today):
    """Next number in this month's sequence, e.g. QUO-202610-0007"""
    period = today.strftime('%Y%m')
    seq = SequenceNumber.query.filter_by(
        organization_id=org_id,
        document_type='quotation',
        period=period
    ).with_for_update().first()

    if not seq:
        seq = SequenceNumber(
            organization_id=org_id,
            document_type='quotation',
            period=period,
            prefix=prefix,
            current_number=0,
            number_length=4
        )
        db.session.add(seq)

    return seq.get_next_number()


def get_quotation_or_404(id):
    quotation = Quotation.query.filter_by(id=id, organization_id=g.organization_id).first()
    if not quotation:
        raise QuotationNotFound(quotation_id=id)
    return quotation


def build_items(items_data):
    """QuotationItem rows from request data; invalid lines raise InvalidLineItem"""
    if not isinstance(items_data, list):
        raise ValueError('items must be a list')

    items = []
    for idx, item_data in enumerate(items_data, start=1):
        if not isinstance(item_data, dict):
            raise InvalidLineItem(idx, 'item must be an object')
        if not sanitize_string(str(item_data.get('name') or '')):
            raise InvalidLineItem(idx, 'name is required')
        quantity, unit_price, _, _ = validate_item(item_data, idx)

        items.append(QuotationItem(
            line_number=idx,
            name=sanitize_string(str(item_data['name'])),
            description=sanitize_string(item_data.get('description') or ''),
            quantity=quantity,
            unit_price=unit_price,
            discount_percent=_optional_decimal(item_data.get('discount_percent')),
            tax_percent=_optional_decimal(item_data.get('tax_percent'))
        ))
    return items


def build_terms(terms_data):
    """Terms as a list of {title, description} objects or a single text block"""
    if isinstance(terms_data, str):
        text = sanitize_string(terms_data)
        return [QuotationTerms(description=text, display_order=0)] if text else []

    terms = []
    for idx, term_data in enumerate(terms_data or []):
        if isinstance(term_data, dict) and term_data.get('description'):
            terms.append(QuotationTerms(
                title=sanitize_string(term_data.get('title') or ''),
                description=sanitize_string(term_data['description']),
                display_order=term_data.get('display_order', idx)
            ))
    return terms


def _optional_decimal(value):
    if value is None or value == '':
        return None
    return to_decimal(value)


def apply_fields(quotation, data):
    """Copy editable request fields onto a quotation. Raises ValueError on bad input."""
    if 'title' in data:
        title = sanitize_string(data.get('title') or '')
        if not title:
            raise ValueError('Title is required')
        quotation.title = title

    if 'contact_id' in data:
        contact = None
        if data['contact_id']:
            contact = Contact.query.filter_by(id=data['contact_id'], organization_id=g.organization_id).first()
            if not contact:
                raise ValueError('Contact not found')
        quotation.contact = contact

    if 'account_manager_id' in data:
        manager = None
        if data['account_manager_id']:
            manager = User.query.filter_by(id=data['account_manager_id'], organization_id=g.organization_id).first()
            if not manager:
                raise ValueError('Account manager not found')
        quotation.account_manager = manager

    if 'issue_date' in data:
        quotation.issue_date = parse_date(data['issue_date'], 'issue_date') or quotation.issue_date
    if 'valid_until' in data:
        valid_until = parse_date(data['valid_until'], 'valid_until')
        if not valid_until:
            raise ValueError('valid_until is required')
        quotation.valid_until = valid_until

    if 'currency' in data:
        currency = (data['currency'] or '').upper()
        if currency not in CURRENCY_FORMATS:
            raise ValueError('Unsupported currency')
        quotation.currency = currency

    if 'discount_type' in data:
        if data['discount_type'] not in ('percentage', 'fixed'):
            raise ValueError('discount_type must be percentage or fixed')
        quotation.discount_type = data['discount_type']
    if 'discount_value' in data:
        quotation.discount_value = to_decimal(data['discount_value'])

    if 'tax_name' in data:
        quotation.tax_name = sanitize_string(data['tax_name'] or '') or 'Tax'
    if 'tax_percentage' in data:
        quotation.tax_percentage = _optional_decimal(data['tax_percentage'])

    for field in ('shipping_charges', 'other_charges'):
        if field in data:
            setattr(quotation, field, to_decimal(data[field]))

    if 'total_is_manual_override' in data:
        quotation.total_is_manual_override = bool(data['total_is_manual_override'])
    if 'manual_total' in data:
        quotation.manual_total = _optional_decimal(data['manual_total'])
    if quotation.total_is_manual_override and quotation.manual_total is None:
        raise ValueError('manual_total is required when the total is overridden')

    for field in ('payment_terms', 'notes', 'customer_notes', 'logo_url', 'signature_url'):
        if field in data:
            setattr(quotation, field, sanitize_string(data[field] or '') or None)

    if 'additional_logos' in data:
        logos = data['additional_logos'] or []
        if not isinstance(logos, list):
            raise ValueError('additional_logos must be a list of image URLs')
        quotation.additional_logos = [sanitize_string(str(url)) for url in logos if url]

    if 'template_id' in data:
        template_id = data['template_id']
        if template_id:
            template_id = template_registry.get_template(g.organization_id, template_id).id
        quotation.template_id = template_id or None

    if 'items' in data:
        quotation.items = build_items(data['items'])
    if 'terms' in data:
        quotation.terms = build_terms(data['terms'])


def serialize_quotation(quotation, detail=False):
    now = datetime.utcnow()
    data = model_to_dict(quotation, exclude=['public_access_token'])
    data['stored_status'] = quotation.status
    data['status'] = effective_status(quotation, now)
    data['can_respond'] = data['status'] == QuotationStatus.SENT
    data['share_url'] = None
    if quotation.public_access_token and quotation.status != QuotationStatus.DRAFT:
        data['share_url'] = quotation_lifecycle.share_url(quotation)

    contact = quotation.contact
    data['contact_name'] = contact.full_name if contact else None
    data['company_name'] = contact.company.name if contact and contact.company else None

    if detail:
        data['items'] = [model_to_dict(item) for item in quotation.items]
        data['terms'] = [model_to_dict(term) for term in quotation.terms]
        data['history'] = [model_to_dict(entry) for entry in quotation.history]
    return data


def load_organization_defaults():
    org = db.session.get(Organization, g.organization_id)
    return document_composer.organization_defaults(org)


@quotation_bp.route('', methods=['GET'])
@jwt_required_with_user()
def list_quotations():
    """List quotations; status filters use the effective (expiry-aware) status"""
    query = Quotation.query.filter_by(organization_id=g.organization_id)
    today = datetime.utcnow().date()

    filters = get_filters()
    if filters.get('search'):
        search = f"%{filters['search']}%"
        query = query.filter(
            db.or_(
                Quotation.quotation_number.ilike(search),
                Quotation.title.ilike(search)
            )
        )

    if request.args.get('contact_id'):
        query = query.filter_by(contact_id=request.args.get('contact_id', type=int))

    status = filters.get('status')
    if status == QuotationStatus.EXPIRED:
        query = query.filter(db.or_(
            Quotation.status == QuotationStatus.EXPIRED,
            db.and_(Quotation.status == QuotationStatus.SENT, Quotation.valid_until < today)
        ))
    elif status == QuotationStatus.SENT:
        query = query.filter(Quotation.status == QuotationStatus.SENT, Quotation.valid_until >= today)
    elif status:
        query = query.filter_by(status=status)

    query = apply_sorting(query, Quotation, filters)

    return success_response(paginate(query, serialize_quotation))


@quotation_bp.route('', methods=['POST'])
@jwt_required_with_user()
def create_quotation():
    """Create a draft quotation"""
    data = get_request_json()

    valid, message = _validate_create(data)
    if not valid:
        return error_response(message)

    settings = get_or_create_quotation_settings(g.organization_id)
    today = datetime.utcnow().date()

    quotation = Quotation(
        organization_id=g.organization_id,
        status=QuotationStatus.DRAFT,
        issue_date=today,
        valid_until=today + timedelta(days=settings.validity_days or current_app.config['QUOTATION_VALIDITY_DAYS']),
        currency=settings.default_currency or current_app.config['DEFAULT_CURRENCY'],
        payment_terms=settings.payment_terms,
        creator=g.current_user,
        discount_type='percentage',
        discount_value=0,
        shipping_charges=0,
        other_charges=0,
        total_is_manual_override=False,
        additional_logos=[]
    )

    try:
        with db.session.no_autoflush:
            apply_fields(quotation, data)
    except ValueError as e:
        return error_response(str(e))

    if quotation.valid_until < quotation.issue_date:
        return error_response('valid_until cannot be before issue_date')

    apply_totals(quotation, compute_for_quotation(quotation))

    quotation.quotation_number = get_next_quotation_number(
        g.organization_id,
        settings.quotation_prefix or current_app.config['QUOTATION_NUMBER_PREFIX'],
        today
    )
    quotation_lifecycle.ensure_access_token(quotation)

    db.session.add(quotation)
    db.session.flush()

    log_audit('quotations', quotation.id, 'CREATE', None, model_to_dict(quotation, exclude=['public_access_token']))
    log_activity(
        activity_type=ActivityType.CREATE,
        entity_type=EntityType.QUOTATION,
        entity_id=quotation.id,
        entity_number=quotation.quotation_number,
        description=f"Created quotation {quotation.quotation_number}",
        commit=False
    )
    db.session.commit()

    return success_response(serialize_quotation(quotation, detail=True), 'Quotation created', 201)


def _validate_create(data):
    if not sanitize_string(data.get('title') or ''):
        return False, 'Title is required'
    if not isinstance(data.get('items', []), list):
        return False, 'items must be a list'
    return True, None


@quotation_bp.route('/<int:id>', methods=['GET'])
@jwt_required_with_user()
def get_quotation(id):
    """Get quotation details"""
    quotation = get_quotation_or_404(id)
    return success_response(serialize_quotation(quotation, detail=True))


@quotation_bp.route('/<int:id>', methods=['PUT'])
@jwt_required_with_user()
def update_quotation(id):
    """Update a draft or sent quotation and recompute its totals"""
    quotation = get_quotation_or_404(id)

    status = effective_status(quotation)
    if status == QuotationStatus.EXPIRED:
        raise QuotationExpired('Reopen the quotation with a new validity date before editing it')
    if status not in QuotationStatus.EDITABLE:
        raise InvalidTransition(status, status, 'Only draft and sent quotations can be edited')

    data = get_request_json()
    old_values = model_to_dict(quotation, exclude=['public_access_token'])

    try:
        with db.session.no_autoflush:
            apply_fields(quotation, data)
    except ValueError as e:
        return error_response(str(e))

    if quotation.valid_until < quotation.issue_date:
        return error_response('valid_until cannot be before issue_date')

    for idx, item in enumerate(quotation.items, start=1):
        item.line_number = idx
    apply_totals(quotation, compute_for_quotation(quotation))
    quotation.updated_at = datetime.utcnow()

    log_audit('quotations', quotation.id, 'UPDATE', old_values,
              model_to_dict(quotation, exclude=['public_access_token']))
    log_activity(
        activity_type=ActivityType.UPDATE,
        entity_type=EntityType.QUOTATION,
        entity_id=quotation.id,
        entity_number=quotation.quotation_number,
        description=f"Updated quotation {quotation.quotation_number}",
        commit=False
    )
    db.session.commit()

    return success_response(serialize_quotation(quotation, detail=True), 'Quotation updated')


@quotation_bp.route('/<int:id>', methods=['DELETE'])
@jwt_required_with_user()
def delete_quotation(id):
    """Delete a draft quotation"""
    quotation = get_quotation_or_404(id)

    if quotation.status != QuotationStatus.DRAFT:
        raise InvalidTransition(quotation.status, 'deleted', 'Can only delete draft quotations')

    log_audit('quotations', quotation.id, 'DELETE', model_to_dict(quotation, exclude=['public_access_token']))
    log_activity(
        activity_type=ActivityType.DELETE,
        entity_type=EntityType.QUOTATION,
        entity_id=quotation.id,
        entity_number=quotation.quotation_number,
        description=f"Deleted quotation {quotation.quotation_number}",
        commit=False
    )
    db.session.delete(quotation)
    db.session.commit()

    return success_response(message='Quotation deleted')


@quotation_bp.route('/<int:id>/send', methods=['POST'])
@jwt_required_with_user()
def send_quotation(id):
    """Mark quotation as sent and return its share link"""
    quotation = get_quotation_or_404(id)
    quotation_lifecycle.send(quotation, user=g.current_user)

    return success_response({
        'quotation': serialize_quotation(quotation),
        'share_url': quotation_lifecycle.share_url(quotation)
    }, 'Quotation sent')


@quotation_bp.route('/<int:id>/approve', methods=['POST'])
@jwt_required_with_user()
def approve_quotation(id):
    """Record client approval on behalf of the client"""
    quotation = get_quotation_or_404(id)
    data = get_request_json()

    quotation_lifecycle.approve(
        quotation, comment=sanitize_string(data.get('comment') or '') or None, user=g.current_user
    )
    return success_response(serialize_quotation(quotation), 'Quotation approved')


@quotation_bp.route('/<int:id>/reject', methods=['POST'])
@jwt_required_with_user()
def reject_quotation(id):
    """Record client rejection on behalf of the client"""
    quotation = get_quotation_or_404(id)
    data = get_request_json()

    reason = sanitize_string(data.get('reason') or data.get('comment') or '') or None
    quotation_lifecycle.reject(quotation, comment=reason, user=g.current_user)
    return success_response(serialize_quotation(quotation), 'Quotation rejected')


@quotation_bp.route('/<int:id>/reopen', methods=['POST'])
@jwt_required_with_user()
def reopen_quotation(id):
    """Reopen an approved, rejected or expired quotation"""
    quotation = get_quotation_or_404(id)
    data = get_request_json()

    try:
        valid_until = parse_date(data.get('valid_until'), 'valid_until')
    except ValueError as e:
        return error_response(str(e))

    quotation_lifecycle.reopen(quotation, valid_until=valid_until, user=g.current_user)
    return success_response(serialize_quotation(quotation), 'Quotation reopened')


@quotation_bp.route('/<int:id>/preview', methods=['GET'])
@jwt_required_with_user()
def preview_quotation(id):
    """Rendered HTML; ?template_id= previews another template"""
    quotation = get_quotation_or_404(id)
    template_id = request.args.get('template_id', type=int) or quotation.template_id

    template = template_registry.resolve_template(g.organization_id, template_id)
    html = document_composer.render(quotation, template, load_organization_defaults())
    return html_response(html)


@quotation_bp.route('/render', methods=['POST'])
@jwt_required_with_user()
def render_unsaved():
    """Render an unsaved quotation payload for live preview"""
    data = get_request_json()
    template = template_registry.resolve_template(g.organization_id, data.get('template_id') or None)
    defaults = load_organization_defaults()

    today = datetime.utcnow().date()
    quotation = Quotation(
        organization_id=g.organization_id,
        quotation_number=sanitize_string(data.get('quotation_number') or '') or 'DRAFT',
        title='',
        issue_date=today,
        valid_until=today + timedelta(days=current_app.config['QUOTATION_VALIDITY_DAYS']),
        currency=current_app.config['DEFAULT_CURRENCY'],
        status=QuotationStatus.DRAFT,
        creator=g.current_user,
        discount_type='percentage',
        discount_value=0,
        tax_name='Tax',
        shipping_charges=0,
        other_charges=0,
        total_is_manual_override=False,
        additional_logos=[]
    )

    payload = {k: v for k, v in data.items() if k != 'template_id'}
    if not sanitize_string(payload.get('title') or ''):
        payload.pop('title', None)

    try:
        with db.session.no_autoflush:
            apply_fields(quotation, payload)
    except ValueError as e:
        return error_response(str(e))

    html = document_composer.render(quotation, template, defaults)
    return html_response(html)
