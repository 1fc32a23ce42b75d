"""Public share-link routes for QuoteDesk (no authentication)"""
from flask import Blueprint, url_for
from datetime import datetime
from config.database import db
from app.models import Organization
from app.utils.security import sanitize_string
from app.utils.helpers import success_response, html_response, get_request_json, model_to_dict
from app.services import document_composer, quotation_lifecycle, template_registry
from app.services.quotation_lifecycle import effective_status

public_bp = Blueprint('public', __name__)

PUBLIC_QUOTATION_FIELDS = [
    'quotation_number', 'title', 'issue_date', 'valid_until', 'currency',
    'subtotal', 'discount_type', 'discount_value', 'discount_amount', 'tax_name',
    'tax_percentage', 'tax_amount', 'charges', 'total', 'amount_in_words',
    'payment_terms', 'customer_notes', 'sent_at', 'approved_at', 'rejected_at',
]
PUBLIC_ITEM_FIELDS = [
    'line_number', 'name', 'description', 'quantity', 'unit_price',
    'discount_percent', 'tax_percent', 'total',
]


def serialize_public(quotation, token):
    now = datetime.utcnow()
    status = effective_status(quotation, now)
    org = db.session.get(Organization, quotation.organization_id)
    defaults = document_composer.organization_defaults(org)

    data = model_to_dict(quotation, include=PUBLIC_QUOTATION_FIELDS)
    data['status'] = status
    data['can_respond'] = quotation_lifecycle.can_respond(quotation, now)
    data['items'] = [model_to_dict(item, include=PUBLIC_ITEM_FIELDS) for item in quotation.items]
    data['terms'] = [{'title': t.title, 'description': t.description} for t in quotation.terms]
    data['organization'] = {
        'name': defaults.company_name,
        'email': defaults.email,
        'phone': defaults.phone,
        'website': defaults.website,
        'logo_url': document_composer.resolve_logo_url(quotation, defaults),
    }
    data['contact_name'] = quotation.contact.full_name if quotation.contact else None
    data['document_url'] = url_for('public.get_shared_document', token=token)
    return data


@public_bp.route('/quotations/<token>', methods=['GET'])
def get_shared_quotation(token):
    """Quotation behind a share link; records the view"""
    quotation = quotation_lifecycle.client_view(token)
    return success_response(serialize_public(quotation, token))


@public_bp.route('/quotations/<token>/document', methods=['GET'])
def get_shared_document(token):
    """Rendered quotation document for the share page frame"""
    quotation = quotation_lifecycle.reconcile_expiry(quotation_lifecycle.resolve_token(token))
    template = template_registry.resolve_template(quotation.organization_id, quotation.template_id)
    org = db.session.get(Organization, quotation.organization_id)

    html = document_composer.render(quotation, template, document_composer.organization_defaults(org))
    return html_response(html)


@public_bp.route('/quotations/<token>/actions', methods=['POST'])
def shared_quotation_action(token):
    """Client response: approve, reject / request_revision, or comment"""
    data = get_request_json()

    quotation = quotation_lifecycle.client_action(
        token,
        data.get('action'),
        comment=sanitize_string(data.get('comment') or '') or None,
        name=sanitize_string(data.get('name') or '')[:200] or None,
        email=sanitize_string(data.get('email') or '')[:120] or None,
    )
    return success_response(serialize_public(quotation, token), 'Response recorded')
