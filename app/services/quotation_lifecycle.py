r"""Quotation lifecycle and public access.

    draft --send--> sent --approve--> approved
                     |  \--reject---> rejected
                     |  \--(valid_until passes)--> expired
                     \--send (re-send, same link)

approved, rejected and expired quotations can be reopened to sent by the
issuing organization. Expiry is derived on read from `valid_until`; the
stored status catches up through reconcile_expiry() and the
`flask expire-quotations` sweep.

Status changes are compare-and-set updates on the stored status so two
concurrent decisions cannot both win.
"""
from datetime import datetime

from flask import current_app

from config.database import db
from app.models import Quotation, QuotationHistory
from app.services.activity_logger import log_activity, ActivityType, EntityType
from app.services.exceptions import (
    InvalidClientAction, InvalidTransition, QuotationExpired, TokenNotFound,
)
from app.utils.security import generate_token


class QuotationStatus:
    DRAFT = 'draft'
    SENT = 'sent'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    EXPIRED = 'expired'

    ALL = (DRAFT, SENT, APPROVED, REJECTED, EXPIRED)
    EDITABLE = (DRAFT, SENT)
    REOPENABLE = (APPROVED, REJECTED, EXPIRED)


class ClientAction:
    APPROVE = 'approve'
    REJECT = 'reject'
    REQUEST_REVISION = 'request_revision'
    COMMENT = 'comment'

    ALL = (APPROVE, REJECT, REQUEST_REVISION, COMMENT)


COMMENT_HISTORY_STATUS = 'comment'


def _today(now):
    return now.date() if isinstance(now, datetime) else now


def derive_status(stored_status, valid_until, now):
    """Effective status at `now`: a sent quotation past its validity is expired.

    `valid_until` is inclusive; the quotation expires the day after.
    """
    if stored_status == QuotationStatus.SENT and valid_until is not None and valid_until < _today(now):
        return QuotationStatus.EXPIRED
    return stored_status


def effective_status(quotation, now=None):
    return derive_status(quotation.status, quotation.valid_until, now or datetime.utcnow())


def can_respond(quotation, now=None):
    return effective_status(quotation, now) == QuotationStatus.SENT


# Access token

def mint_access_token():
    return generate_token(current_app.config['PUBLIC_ACCESS_TOKEN_BYTES'])


def ensure_access_token(quotation):
    """Mint the public token when absent; an issued token never changes"""
    if not quotation.public_access_token:
        quotation.public_access_token = mint_access_token()
    return quotation.public_access_token


def share_url(quotation):
    base = current_app.config['PUBLIC_SHARE_BASE_URL'].rstrip('/')
    return f'{base}/{quotation.public_access_token}'


# Transition plumbing

def _compare_and_set(quotation, expected_status, values, *criteria):
    """UPDATE quotations SET ... WHERE id = :id AND status = :expected"""
    updated = Quotation.query.filter(
        Quotation.id == quotation.id,
        Quotation.status == expected_status,
        *criteria
    ).update(values, synchronize_session='fetch')
    return updated == 1


def _refused(status, target_status, via_public_link=False):
    if via_public_link and status in (QuotationStatus.APPROVED, QuotationStatus.REJECTED):
        return InvalidTransition(status, target_status, f'This quotation has already been {status}.')
    return InvalidTransition(status, target_status)


def _conflict(quotation, target_status, now, via_public_link=False):
    """Reload after a lost compare-and-set and raise the matching error"""
    db.session.rollback()
    status = effective_status(quotation, now)
    current_app.logger.info(
        'Quotation %s changed concurrently; now %s, wanted %s', quotation.id, status, target_status
    )
    if status == QuotationStatus.EXPIRED:
        raise QuotationExpired(quotation_id=quotation.id)
    raise _refused(status, target_status, via_public_link)


def _record(quotation, status, activity_type, description, now, comment=None,
            user=None, name=None, email=None, via_public_link=False):
    db.session.add(QuotationHistory(
        quotation_id=quotation.id,
        status=status,
        comment=comment,
        user_id=user.id if user else None,
        actor_name=name or (user.full_name if user else None),
        actor_email=email or (user.email if user else None),
        via_public_link=via_public_link,
        created_at=now,
    ))
    log_activity(
        activity_type=activity_type,
        description=description,
        entity_type=EntityType.QUOTATION,
        entity_id=quotation.id,
        entity_number=quotation.quotation_number,
        extra_data={'status': status, 'via_public_link': via_public_link},
        organization_id=quotation.organization_id,
        commit=False,
    )


# Issuing side

def send(quotation, now=None, user=None):
    """draft -> sent, or re-send a sent quotation. The share link never changes."""
    now = now or datetime.utcnow()
    status = effective_status(quotation, now)
    if status == QuotationStatus.EXPIRED:
        raise QuotationExpired(quotation_id=quotation.id)
    if status not in (QuotationStatus.DRAFT, QuotationStatus.SENT):
        raise InvalidTransition(status, QuotationStatus.SENT)

    resend = status == QuotationStatus.SENT
    token = ensure_access_token(quotation)
    values = {'status': QuotationStatus.SENT, 'sent_at': now, 'public_access_token': token, 'updated_at': now}
    if not _compare_and_set(quotation, status, values):
        _conflict(quotation, QuotationStatus.SENT, now)

    _record(
        quotation, QuotationStatus.SENT, ActivityType.SEND,
        f"{'Re-sent' if resend else 'Sent'} quotation {quotation.quotation_number}",
        now, comment='Re-sent' if resend else None, user=user,
    )
    db.session.commit()
    current_app.logger.info('Quotation %s sent', quotation.id)
    return quotation


def reopen(quotation, now=None, valid_until=None, user=None):
    """approved | rejected | expired -> sent.

    The quotation must be valid again afterwards: pass a new `valid_until`
    when the current one has passed.
    """
    now = now or datetime.utcnow()
    status = effective_status(quotation, now)
    if status not in QuotationStatus.REOPENABLE:
        raise InvalidTransition(status, QuotationStatus.SENT)

    valid_until = valid_until or quotation.valid_until
    if valid_until < _today(now):
        raise QuotationExpired(
            'Set a validity date in the future to reopen this quotation', quotation_id=quotation.id
        )

    ensure_access_token(quotation)
    values = {
        'status': QuotationStatus.SENT,
        'valid_until': valid_until,
        'public_access_token': quotation.public_access_token,
        'approved_at': None,
        'rejected_at': None,
        'rejection_reason': None,
        'expired_at': None,
        'sent_at': now,
        'updated_at': now,
    }
    if not _compare_and_set(quotation, quotation.status, values):
        _conflict(quotation, QuotationStatus.SENT, now)

    _record(quotation, QuotationStatus.SENT, ActivityType.REOPEN,
            f'Reopened quotation {quotation.quotation_number}', now,
            comment=f'Reopened from {status}', user=user)
    db.session.commit()
    return quotation


# Decisions, from either side

def _decide(quotation, target_status, now, comment=None, user=None, name=None, email=None,
            via_public_link=False):
    now = now or datetime.utcnow()
    status = effective_status(quotation, now)
    if status == QuotationStatus.EXPIRED:
        reconcile_expiry(quotation, now)
        raise QuotationExpired(quotation_id=quotation.id)
    if status != QuotationStatus.SENT:
        raise _refused(status, target_status, via_public_link)

    if target_status == QuotationStatus.APPROVED:
        values = {'status': target_status, 'approved_at': now, 'updated_at': now}
        activity_type, verb = ActivityType.APPROVE, 'Approved'
    else:
        values = {'status': target_status, 'rejected_at': now, 'rejection_reason': (comment or '')[:500] or None,
                  'updated_at': now}
        activity_type, verb = ActivityType.REJECT, 'Rejected'

    if not _compare_and_set(quotation, QuotationStatus.SENT, values, Quotation.valid_until >= _today(now)):
        _conflict(quotation, target_status, now, via_public_link)

    who = 'client' if via_public_link else 'user'
    _record(quotation, target_status, activity_type,
            f'{verb} quotation {quotation.quotation_number} ({who})', now,
            comment=comment, user=user, name=name, email=email, via_public_link=via_public_link)
    db.session.commit()
    return quotation


def approve(quotation, now=None, comment=None, user=None, name=None, email=None, via_public_link=False):
    return _decide(quotation, QuotationStatus.APPROVED, now, comment, user, name, email, via_public_link)


def reject(quotation, now=None, comment=None, user=None, name=None, email=None, via_public_link=False):
    return _decide(quotation, QuotationStatus.REJECTED, now, comment, user, name, email, via_public_link)


# Expiry

def reconcile_expiry(quotation, now=None):
    """Store `expired` on a sent quotation whose validity has passed"""
    now = now or datetime.utcnow()
    if quotation.status != QuotationStatus.SENT or effective_status(quotation, now) != QuotationStatus.EXPIRED:
        return quotation

    values = {'status': QuotationStatus.EXPIRED, 'expired_at': now, 'updated_at': now}
    if not _compare_and_set(quotation, QuotationStatus.SENT, values):
        # Decided or reopened concurrently; keep what the other request stored
        db.session.rollback()
        return quotation

    _record(quotation, QuotationStatus.EXPIRED, ActivityType.EXPIRE,
            f'Quotation {quotation.quotation_number} expired', now)
    db.session.commit()
    return quotation


def expire_overdue(now=None, organization_id=None):
    """Store `expired` on every overdue sent quotation; returns how many changed"""
    now = now or datetime.utcnow()
    query = Quotation.query.filter(
        Quotation.status == QuotationStatus.SENT,
        Quotation.valid_until < _today(now),
    )
    if organization_id is not None:
        query = query.filter(Quotation.organization_id == organization_id)

    expired = 0
    for quotation in query.order_by(Quotation.id).all():
        reconcile_expiry(quotation, now)
        if quotation.status == QuotationStatus.EXPIRED:
            expired += 1

    current_app.logger.info('Expired %d overdue quotations', expired)
    return expired


# Public share link

def resolve_token(token):
    """Quotation behind a share link. Drafts are never reachable."""
    if not token:
        raise TokenNotFound()
    quotation = Quotation.query.filter_by(public_access_token=token).first()
    if quotation is None or quotation.status == QuotationStatus.DRAFT:
        raise TokenNotFound()
    return quotation


def client_view(token, now=None):
    now = now or datetime.utcnow()
    quotation = reconcile_expiry(resolve_token(token), now)

    Quotation.query.filter_by(id=quotation.id).update(
        {'last_viewed_at': now}, synchronize_session='fetch'
    )
    log_activity(
        activity_type=ActivityType.VIEW,
        description=f'Client viewed quotation {quotation.quotation_number}',
        entity_type=EntityType.QUOTATION,
        entity_id=quotation.id,
        entity_number=quotation.quotation_number,
        extra_data={'via_public_link': True},
        organization_id=quotation.organization_id,
        commit=False,
    )
    db.session.commit()
    return quotation


def client_action(token, action, now=None, comment=None, name=None, email=None):
    """Approve, reject or comment on a quotation through its share link"""
    now = now or datetime.utcnow()
    action = (action or '').strip().lower()
    if action not in ClientAction.ALL:
        raise InvalidClientAction(f"Action must be one of: {', '.join(ClientAction.ALL)}")
    if action == ClientAction.REQUEST_REVISION:
        action = ClientAction.REJECT

    comment = (comment or '').strip() or None
    if action in (ClientAction.REJECT, ClientAction.COMMENT) and not comment:
        raise InvalidClientAction('A comment is required for this action')

    quotation = reconcile_expiry(resolve_token(token), now)
    if effective_status(quotation, now) == QuotationStatus.EXPIRED:
        raise QuotationExpired(quotation_id=quotation.id)

    if action == ClientAction.APPROVE:
        return approve(quotation, now, comment, name=name, email=email, via_public_link=True)
    if action == ClientAction.REJECT:
        return reject(quotation, now, comment, name=name, email=email, via_public_link=True)

    _record(quotation, COMMENT_HISTORY_STATUS, ActivityType.COMMENT,
            f'Client commented on quotation {quotation.quotation_number}', now,
            comment=comment, name=name, email=email, via_public_link=True)
    db.session.commit()
    return quotation
