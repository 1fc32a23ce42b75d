"""Quotation template routes for QuoteDesk"""
from flask import Blueprint, g
from app.utils.security import jwt_required_with_user
from app.utils.helpers import success_response, get_request_json
from app.services import template_registry
from app.services.template_registry import template_to_dict

template_bp = Blueprint('quotation_template', __name__)


@template_bp.route('', methods=['GET'])
@jwt_required_with_user()
def list_templates():
    """List templates, default first"""
    templates = template_registry.list_templates(g.organization_id)
    return success_response([template_to_dict(t) for t in templates])


@template_bp.route('', methods=['POST'])
@jwt_required_with_user()
def create_template():
    """Create template; the organization's first template becomes its default"""
    data = get_request_json()
    template = template_registry.create_template(g.organization_id, data, creator_id=g.current_user.id)
    return success_response(template_to_dict(template), 'Template created', 201)


@template_bp.route('/<int:id>', methods=['GET'])
@jwt_required_with_user()
def get_template(id):
    template = template_registry.get_template(g.organization_id, id)
    return success_response(template_to_dict(template))


@template_bp.route('/<int:id>', methods=['PUT'])
@jwt_required_with_user()
def update_template(id):
    data = get_request_json()
    template = template_registry.update_template(g.organization_id, id, data)
    return success_response(template_to_dict(template), 'Template updated')


@template_bp.route('/<int:id>', methods=['DELETE'])
@jwt_required_with_user()
def delete_template(id):
    """Delete a template that is not the default"""
    template_registry.delete_template(g.organization_id, id)
    return success_response(message='Template deleted')


@template_bp.route('/<int:id>/duplicate', methods=['POST'])
@jwt_required_with_user()
def duplicate_template(id):
    template = template_registry.duplicate_template(g.organization_id, id, creator_id=g.current_user.id)
    return success_response(template_to_dict(template), 'Template duplicated', 201)


@template_bp.route('/<int:id>/set-default', methods=['POST'])
@jwt_required_with_user()
def set_default_template(id):
    template = template_registry.set_default(g.organization_id, id)
    return success_response(template_to_dict(template), 'Default template updated')


@template_bp.route('/seed', methods=['POST'])
@jwt_required_with_user()
def seed_templates():
    """Install the prebuilt templates the organization does not have yet"""
    created = template_registry.seed_prebuilt_templates(g.organization_id, creator_id=g.current_user.id)
    return success_response(
        [template_to_dict(t) for t in created],
        f'{len(created)} templates installed',
        201 if created else 200
    )
