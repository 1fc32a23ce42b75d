from app.models.organization import Organization
from app.models.user import User
from app.models.contact import Company, Contact
from app.models.template import QuotationTemplate
from app.models.quotation import Quotation, QuotationItem, QuotationTerms, QuotationHistory
from app.models.settings import QuotationSettings, SequenceNumber
from app.models.audit import AuditLog, ActivityLog

__all__ = [
    'Organization',
    'User',
    'Company', 'Contact',
    'QuotationTemplate',
    'Quotation', 'QuotationItem', 'QuotationTerms', 'QuotationHistory',
    'QuotationSettings', 'SequenceNumber',
    'AuditLog', 'ActivityLog'
]
