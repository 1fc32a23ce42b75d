"""Services for QuoteDesk"""
from app.services.activity_logger import (
    log_activity,
    log_audit,
    ActivityType,
    EntityType
)

__all__ = [
    'log_activity',
    'log_audit',
    'ActivityType',
    'EntityType'
]
