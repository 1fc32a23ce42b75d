"""Security utilities for QuoteDesk"""
import secrets
from functools import wraps
from flask import g, jsonify, current_app
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity, get_jwt
import bleach
from bleach.css_sanitizer import CSSSanitizer


# Token generation
def generate_token(length: int = 32) -> str:
    """URL-safe random token; `length` is the number of random bytes"""
    return secrets.token_urlsafe(length)


# Input sanitization
def sanitize_string(text: str) -> str:
    if not text:
        return text
    return bleach.clean(text, tags=[], strip=True).strip()


TEMPLATE_TAGS = [
    'a', 'b', 'br', 'div', 'em', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'hr', 'i',
    'img', 'li', 'ol', 'p', 'small', 'span', 'strong', 'table', 'tbody', 'td',
    'tfoot', 'th', 'thead', 'tr', 'u', 'ul',
]
TEMPLATE_ATTRIBUTES = {
    '*': ['style', 'class', 'id', 'align'],
    'a': ['href', 'target', 'rel'],
    'img': ['src', 'alt', 'width', 'height'],
    'td': ['colspan', 'rowspan'],
    'th': ['colspan', 'rowspan'],
}
TEMPLATE_CSS_PROPERTIES = [
    'align-items', 'background', 'background-color', 'border', 'border-bottom',
    'border-collapse', 'border-color', 'border-left', 'border-radius', 'border-right',
    'border-style', 'border-top', 'border-width', 'color', 'display', 'flex',
    'flex-direction', 'flex-wrap', 'font-family', 'font-size', 'font-style',
    'font-weight', 'gap', 'height', 'justify-content', 'letter-spacing', 'line-height',
    'margin', 'margin-bottom', 'margin-left', 'margin-right', 'margin-top',
    'max-height', 'max-width', 'min-height', 'min-width', 'object-fit', 'padding',
    'padding-bottom', 'padding-left', 'padding-right', 'padding-top', 'text-align',
    'text-decoration', 'text-transform', 'vertical-align', 'white-space', 'width',
]

_template_css_sanitizer = CSSSanitizer(allowed_css_properties=TEMPLATE_CSS_PROPERTIES)


def sanitize_template_html(html: str) -> str:
    """Clean organization-authored template HTML. {{token}} placeholders survive."""
    if not html:
        return html or ''
    return bleach.clean(
        html,
        tags=TEMPLATE_TAGS,
        attributes=TEMPLATE_ATTRIBUTES,
        protocols=['http', 'https', 'data', 'mailto'],
        css_sanitizer=_template_css_sanitizer,
        strip=True,
    )


def sanitize_css(css: str) -> str:
    """Custom CSS is injected into a <style> element; it may not open tags"""
    if not css:
        return ''
    return css.replace('<', '')


# JWT authentication decorator
def jwt_required_with_user():
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            from flask_jwt_extended.exceptions import NoAuthorizationError, InvalidHeaderError
            from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

            try:
                verify_jwt_in_request()
            except NoAuthorizationError:
                return jsonify({'error': 'Authorization header missing'}), 401
            except InvalidHeaderError as e:
                return jsonify({'error': f'Invalid authorization header: {str(e)}'}), 401
            except ExpiredSignatureError:
                return jsonify({'error': 'Token has expired'}), 401
            except InvalidTokenError as e:
                return jsonify({'error': f'Invalid token: {str(e)}'}), 401

            user_id = get_jwt_identity()
            claims = get_jwt()

            from app.models import User
            user = User.query.filter_by(id=int(user_id), is_active=True).first()

            if not user:
                current_app.logger.warning('Rejected token for missing or inactive user %s', user_id)
                return jsonify({'error': 'User not found or inactive'}), 401

            g.current_user = user
            g.organization_id = claims.get('organization_id') or user.organization_id

            return f(*args, **kwargs)
        return decorated_function
    return decorator
