"""Quotation engine errors.

Every error carries the HTTP status and a stable machine-readable code so
the app factory can translate it into the standard JSON error envelope.
"""


class QuotationEngineError(Exception):
    status_code = 400
    code = 'quotation_engine_error'

    def __init__(self, message=None, **details):
        super().__init__(message or self.default_message())
        self.message = message or self.default_message()
        self.details = details

    def default_message(self):
        return 'Quotation engine error'

    def to_dict(self):
        data = {'success': False, 'error': self.message, 'code': self.code}
        if self.details:
            data['details'] = self.details
        return data


# Pricing

class PricingError(QuotationEngineError):
    code = 'pricing_error'


class InvalidLineItem(PricingError):
    code = 'invalid_line_item'

    def __init__(self, line_number, reason):
        super().__init__(f'Line {line_number}: {reason}', line_number=line_number)
        self.line_number = line_number
        self.reason = reason


class InvalidAdjustment(PricingError):
    code = 'invalid_adjustment'


# Templates

class TemplateNotFound(QuotationEngineError):
    status_code = 404
    code = 'template_not_found'

    def default_message(self):
        return 'Template not found'


class InvalidTemplate(QuotationEngineError):
    code = 'invalid_template'


class CannotDeleteDefault(QuotationEngineError):
    status_code = 409
    code = 'cannot_delete_default'

    def default_message(self):
        return 'The default template cannot be deleted. Set another template as default first.'


class DefaultTemplateRequired(QuotationEngineError):
    status_code = 409
    code = 'default_template_required'

    def default_message(self):
        return 'An organization must keep one default template. Set another template as default instead.'


class DefaultTemplateConflict(QuotationEngineError):
    status_code = 409
    code = 'default_template_conflict'

    def default_message(self):
        return 'Another default template change happened at the same time. Please retry.'


# Lifecycle

class QuotationNotFound(QuotationEngineError):
    status_code = 404
    code = 'quotation_not_found'

    def default_message(self):
        return 'Quotation not found'


class TokenNotFound(QuotationEngineError):
    status_code = 404
    code = 'token_not_found'

    def default_message(self):
        return 'This quotation link does not exist.'


class QuotationExpired(QuotationEngineError):
    status_code = 410
    code = 'quotation_expired'

    def default_message(self):
        return 'This quotation has expired. Please contact the sender for an updated quotation.'


class InvalidTransition(QuotationEngineError):
    status_code = 409
    code = 'invalid_transition'

    def __init__(self, current_status, target_status, message=None):
        super().__init__(
            message or f'Cannot move quotation from {current_status} to {target_status}',
            current_status=current_status,
            target_status=target_status,
        )
        self.current_status = current_status
        self.target_status = target_status


class InvalidClientAction(QuotationEngineError):
    code = 'invalid_action'


class InvariantViolation(QuotationEngineError):
    """Stored data breaks an engine invariant. Never corrected silently."""
    status_code = 500
    code = 'invariant_violation'
