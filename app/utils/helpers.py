"""Response and helper utilities for QuoteDesk"""
from flask import jsonify, request
from datetime import date, datetime
from decimal import Decimal


def success_response(data=None, message=None, status_code=200):
    response = {'success': True}
    if message:
        response['message'] = message
    if data is not None:
        response['data'] = data
    return jsonify(response), status_code


def error_response(message, errors=None, status_code=400):
    response = {'success': False, 'error': message}
    if errors:
        response['errors'] = errors
    return jsonify(response), status_code


def html_response(html, status_code=200):
    return html, status_code, {'Content-Type': 'text/html; charset=utf-8'}


def paginate(query, serializer=None):
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('per_page', 20, type=int), 100)

    pagination = query.paginate(page=page, per_page=per_page, error_out=False)

    items = pagination.items
    if serializer:
        items = [serializer(i) for i in items]

    return {
        'items': items,
        'pagination': {
            'page': pagination.page,
            'per_page': pagination.per_page,
            'total_pages': pagination.pages,
            'total_items': pagination.total,
            'has_next': pagination.has_next,
            'has_prev': pagination.has_prev
        }
    }


def get_request_json():
    """Safely get JSON from request"""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def get_filters():
    """Extract common filter parameters"""
    return {
        'search': request.args.get('search', ''),
        'sort_by': request.args.get('sort_by', 'created_at'),
        'sort_order': request.args.get('sort_order', 'desc'),
        'status': request.args.get('status'),
    }


def apply_sorting(query, model, filters):
    """Apply sort_by / sort_order to a query"""
    from sqlalchemy import desc, asc

    sort_by = filters.get('sort_by', 'created_at')
    if hasattr(model, sort_by):
        sort_column = getattr(model, sort_by)
        if filters.get('sort_order', 'desc') == 'desc':
            query = query.order_by(desc(sort_column), desc(model.id))
        else:
            query = query.order_by(asc(sort_column), asc(model.id))

    return query


def model_to_dict(model, exclude=None, include=None):
    """Convert SQLAlchemy model to dictionary"""
    exclude = exclude or []
    result = {}

    for column in model.__table__.columns:
        if column.name in exclude:
            continue
        if include and column.name not in include:
            continue

        value = getattr(model, column.name)
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            value = float(value)
        result[column.name] = value

    return result


def parse_date(value, field_name='date'):
    """Parse an ISO date string; raises ValueError with a readable message"""
    if value in (None, ''):
        return None
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value)[:10]).date()
    except ValueError:
        raise ValueError(f'{field_name} must be an ISO date (YYYY-MM-DD)')

