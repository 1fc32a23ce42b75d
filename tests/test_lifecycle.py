import warnings
from datetime import date, datetime, timedelta
from pathlib import Path

import pytest

from config.database import db
from app.models import ActivityLog, Quotation, QuotationHistory
from app.services import quotation_lifecycle as lifecycle
from app.services.exceptions import (
    InvalidClientAction, InvalidTransition, QuotationExpired, TokenNotFound,
)
from app.services.quotation_lifecycle import QuotationStatus

NOW = datetime(2026, 10, 19, 9, 30)
TODAY = NOW.date()


def _stored_status(quotation):
    return db.session.query(Quotation.status).filter_by(id=quotation.id).scalar()


def test_derive_status_expires_only_sent_quotations():
    yesterday = TODAY - timedelta(days=1)
    assert lifecycle.derive_status('sent', yesterday, NOW) == 'expired'
    assert lifecycle.derive_status('sent', TODAY, NOW) == 'sent'
    assert lifecycle.derive_status('draft', yesterday, NOW) == 'draft'
    assert lifecycle.derive_status('approved', yesterday, NOW) == 'approved'
    assert lifecycle.derive_status('sent', yesterday, TODAY) == 'expired'


def test_send_keeps_the_token(make_quotation, user):
    quotation = make_quotation(valid_until=TODAY + timedelta(days=10))
    token = quotation.public_access_token
    assert token

    lifecycle.send(quotation, now=NOW, user=user)
    assert _stored_status(quotation) == 'sent'
    assert quotation.public_access_token == token

    lifecycle.send(quotation, now=NOW + timedelta(hours=1), user=user)
    assert quotation.public_access_token == token
    comments = [h.comment for h in QuotationHistory.query.filter_by(quotation_id=quotation.id).order_by(QuotationHistory.id)]
    assert comments == [None, 'Re-sent']


def test_share_url_uses_the_token(make_quotation):
    quotation = make_quotation()
    assert lifecycle.share_url(quotation) == (
        f'https://quotes.example.test/share/{quotation.public_access_token}'
    )


def test_send_rejects_decided_quotations(make_quotation):
    quotation = make_quotation(status='approved', valid_until=TODAY + timedelta(days=10))
    with pytest.raises(InvalidTransition):
        lifecycle.send(quotation, now=NOW)


def test_approve_sent_quotation(make_quotation):
    quotation = make_quotation(status='sent', valid_until=TODAY)
    lifecycle.approve(quotation, now=NOW, comment='Looks good')

    assert _stored_status(quotation) == 'approved'
    assert quotation.approved_at == NOW
    history = QuotationHistory.query.filter_by(quotation_id=quotation.id).one()
    assert history.status == 'approved'
    assert history.comment == 'Looks good'
    assert ActivityLog.query.filter_by(entity_id=quotation.id, activity_type='approve').count() == 1


def test_draft_cannot_be_decided(make_quotation):
    quotation = make_quotation(valid_until=TODAY + timedelta(days=10))
    with pytest.raises(InvalidTransition) as exc:
        lifecycle.approve(quotation, now=NOW)
    assert exc.value.current_status == 'draft'
    assert _stored_status(quotation) == 'draft'


def test_decision_is_final(make_quotation):
    quotation = make_quotation(status='sent', valid_until=TODAY + timedelta(days=10))
    lifecycle.reject(quotation, now=NOW, comment='Too expensive')
    assert quotation.rejection_reason == 'Too expensive'

    with pytest.raises(InvalidTransition):
        lifecycle.approve(quotation, now=NOW)
    assert _stored_status(quotation) == 'rejected'


def test_concurrent_decision_loses(make_quotation, monkeypatch):
    quotation = make_quotation(status='sent', valid_until=TODAY + timedelta(days=10))
    original = lifecycle._compare_and_set

    def racing(q, expected, values, *criteria):
        db.session.execute(
            db.text("UPDATE quotations SET status = 'rejected' WHERE id = :id"), {'id': q.id}
        )
        db.session.commit()
        return original(q, expected, values, *criteria)

    monkeypatch.setattr(lifecycle, '_compare_and_set', racing)
    with pytest.raises(InvalidTransition) as exc:
        lifecycle.approve(quotation, now=NOW)

    assert exc.value.current_status == 'rejected'
    assert _stored_status(quotation) == 'rejected'
    assert QuotationHistory.query.filter_by(quotation_id=quotation.id).count() == 0


def test_overdue_quotation_reads_as_expired(make_quotation):
    quotation = make_quotation(status='sent', valid_until=TODAY - timedelta(days=1))
    assert lifecycle.effective_status(quotation, NOW) == 'expired'
    assert not lifecycle.can_respond(quotation, NOW)
    assert _stored_status(quotation) == 'sent'

    lifecycle.reconcile_expiry(quotation, NOW)
    assert _stored_status(quotation) == 'expired'
    assert quotation.expired_at == NOW


def test_deciding_an_overdue_quotation_expires_it(make_quotation):
    quotation = make_quotation(status='sent', valid_until=TODAY - timedelta(days=1))
    with pytest.raises(QuotationExpired):
        lifecycle.approve(quotation, now=NOW)
    assert _stored_status(quotation) == 'expired'


def test_reopen_needs_a_future_validity(make_quotation):
    quotation = make_quotation(status='expired', valid_until=TODAY - timedelta(days=3))
    token = quotation.public_access_token

    with pytest.raises(QuotationExpired):
        lifecycle.reopen(quotation, now=NOW)
    assert _stored_status(quotation) == 'expired'

    lifecycle.reopen(quotation, now=NOW, valid_until=TODAY + timedelta(days=14))
    assert _stored_status(quotation) == 'sent'
    assert quotation.valid_until == TODAY + timedelta(days=14)
    assert quotation.public_access_token == token


def test_reopen_clears_the_previous_decision(make_quotation):
    quotation = make_quotation(status='sent', valid_until=TODAY + timedelta(days=5))
    lifecycle.approve(quotation, now=NOW)
    lifecycle.reopen(quotation, now=NOW + timedelta(hours=2))

    assert _stored_status(quotation) == 'sent'
    assert quotation.approved_at is None
    assert lifecycle.can_respond(quotation, NOW)


def test_reopen_refuses_open_quotations(make_quotation):
    quotation = make_quotation(status='sent', valid_until=TODAY + timedelta(days=5))
    with pytest.raises(InvalidTransition):
        lifecycle.reopen(quotation, now=NOW)


def test_expire_overdue_sweep(org, other_org, make_quotation):
    overdue = TODAY - timedelta(days=2)
    make_quotation(status='sent', valid_until=overdue)
    make_quotation(status='sent', valid_until=overdue)
    make_quotation(status='sent', valid_until=TODAY)
    make_quotation(status='draft', valid_until=overdue)

    assert lifecycle.expire_overdue(NOW, organization_id=other_org.id) == 0
    assert lifecycle.expire_overdue(NOW) == 2
    assert lifecycle.expire_overdue(NOW) == 0
    assert Quotation.query.filter_by(status='expired').count() == 2
    assert Quotation.query.filter_by(status='draft').count() == 1


def test_draft_and_unknown_tokens_are_not_found(make_quotation):
    draft = make_quotation()
    with pytest.raises(TokenNotFound):
        lifecycle.resolve_token(draft.public_access_token)
    with pytest.raises(TokenNotFound):
        lifecycle.resolve_token('no-such-token')
    with pytest.raises(TokenNotFound):
        lifecycle.resolve_token('')


def test_client_view_stamps_last_viewed(make_quotation):
    quotation = make_quotation(status='sent', valid_until=TODAY + timedelta(days=5))
    viewed = lifecycle.client_view(quotation.public_access_token, now=NOW)
    assert viewed.id == quotation.id
    assert viewed.last_viewed_at == NOW
    assert ActivityLog.query.filter_by(entity_id=quotation.id, activity_type='view').count() == 1


def test_client_comment_keeps_status(make_quotation):
    quotation = make_quotation(status='sent', valid_until=TODAY + timedelta(days=5))
    lifecycle.client_action(
        quotation.public_access_token, 'comment', now=NOW,
        comment='Can you add installation?', name='Carla', email='carla@client.test',
    )

    assert _stored_status(quotation) == 'sent'
    history = QuotationHistory.query.filter_by(quotation_id=quotation.id).one()
    assert history.status == 'comment'
    assert history.via_public_link is True
    assert history.actor_email == 'carla@client.test'


def test_client_request_revision_rejects(make_quotation):
    quotation = make_quotation(status='sent', valid_until=TODAY + timedelta(days=5))
    lifecycle.client_action(quotation.public_access_token, 'request_revision', now=NOW,
                            comment='Please split the delivery')
    assert _stored_status(quotation) == 'rejected'


@pytest.mark.parametrize('action, comment', [
    ('reject', None),
    ('comment', '   '),
    ('delete', 'x'),
])
def test_invalid_client_actions(make_quotation, action, comment):
    quotation = make_quotation(status='sent', valid_until=TODAY + timedelta(days=5))
    with pytest.raises(InvalidClientAction):
        lifecycle.client_action(quotation.public_access_token, action, now=NOW, comment=comment)
    assert _stored_status(quotation) == 'sent'


def test_client_action_on_overdue_quotation(make_quotation):
    quotation = make_quotation(status='sent', valid_until=date(2026, 10, 1))
    with pytest.raises(QuotationExpired):
        lifecycle.client_action(quotation.public_access_token, 'approve', now=NOW)
    assert _stored_status(quotation) == 'expired'


def test_status_constants():
    assert QuotationStatus.ALL == ('draft', 'sent', 'approved', 'rejected', 'expired')


def test_client_sees_a_plain_message_for_decided_quotations(make_quotation):
    quotation = make_quotation(status='sent', valid_until=TODAY + timedelta(days=5))
    lifecycle.client_action(quotation.public_access_token, 'approve', now=NOW)

    with pytest.raises(InvalidTransition) as exc:
        lifecycle.client_action(quotation.public_access_token, 'approve', now=NOW)
    assert exc.value.message == 'This quotation has already been approved.'

    with pytest.raises(InvalidTransition) as exc:
        lifecycle.approve(quotation, now=NOW)
    assert exc.value.message == 'Cannot move quotation from approved to approved'


def test_module_compiles_without_warnings():
    source = Path(lifecycle.__file__).read_text(encoding='utf-8')
    with warnings.catch_warnings():
        warnings.simplefilter('error')
        compile(source, lifecycle.__file__, 'exec')
