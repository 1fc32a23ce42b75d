from datetime import date, timedelta

from config.database import db
from app.models import Quotation, QuotationHistory


def _url(quotation, suffix=''):
    return f'/api/public/quotations/{quotation.public_access_token}{suffix}'


def test_unknown_token(client):
    response = client.get('/api/public/quotations/not-a-token')
    assert response.status_code == 404
    assert response.get_json()['code'] == 'token_not_found'


def test_draft_is_not_shared(client, make_quotation):
    response = client.get(_url(make_quotation()))
    assert response.status_code == 404
    assert response.get_json()['code'] == 'token_not_found'


def test_view_sent_quotation(client, make_quotation, company_contact):
    quotation = make_quotation(status='sent', contact=company_contact)

    response = client.get(_url(quotation))
    assert response.status_code == 200
    data = response.get_json()['data']
    assert data['status'] == 'sent'
    assert data['can_respond'] is True
    assert data['total'] == 212.4
    assert data['organization']['name'] == 'Sender Works Ltd'
    assert data['contact_name'] == 'Carla Client'
    assert data['document_url'] == _url(quotation, '/document')
    assert 'public_access_token' not in data
    assert 'notes' not in data
    assert db.session.get(Quotation, quotation.id).last_viewed_at is not None


def test_view_overdue_quotation_reports_expired(client, make_quotation):
    quotation = make_quotation(status='sent', valid_until=date.today() - timedelta(days=1))
    data = client.get(_url(quotation)).get_json()['data']
    assert data['status'] == 'expired'
    assert data['can_respond'] is False
    assert db.session.get(Quotation, quotation.id).status == 'expired'


def test_shared_document(client, make_template, make_quotation):
    make_template(layout={'footer': {'show': True, 'content': '<p>{{company_website}}</p>'}})
    quotation = make_quotation(status='sent')

    response = client.get(_url(quotation, '/document'))
    assert response.status_code == 200
    assert response.mimetype == 'text/html'
    html = response.get_data(as_text=True)
    assert '<p>https://sender.test</p>' in html
    assert html.rstrip().endswith('QuoteDesk</strong></div></body></html>')
    assert 'frame-ancestors' in response.headers['Content-Security-Policy']


def test_client_approves(client, make_quotation):
    quotation = make_quotation(status='sent')
    response = client.post(_url(quotation, '/actions'), json={
        'action': 'approve', 'name': 'Carla', 'email': 'carla@client.test',
    })
    assert response.status_code == 200
    assert response.get_json()['data']['status'] == 'approved'

    history = QuotationHistory.query.filter_by(quotation_id=quotation.id).one()
    assert history.via_public_link is True
    assert history.actor_name == 'Carla'


def test_client_comment(client, make_quotation):
    quotation = make_quotation(status='sent')
    response = client.post(_url(quotation, '/actions'), json={
        'action': 'comment', 'comment': 'Could delivery be next week?',
    })
    assert response.status_code == 200
    assert response.get_json()['data']['status'] == 'sent'
    assert QuotationHistory.query.filter_by(quotation_id=quotation.id, status='comment').count() == 1


def test_reject_needs_comment(client, make_quotation):
    quotation = make_quotation(status='sent')
    response = client.post(_url(quotation, '/actions'), json={'action': 'reject'})
    assert response.status_code == 400
    assert response.get_json()['code'] == 'invalid_action'


def test_decided_quotation_cannot_be_decided_again(client, make_quotation):
    quotation = make_quotation(status='sent')
    client.post(_url(quotation, '/actions'), json={'action': 'reject', 'comment': 'No budget'})

    response = client.post(_url(quotation, '/actions'), json={'action': 'approve'})
    assert response.status_code == 409
    assert response.get_json()['code'] == 'invalid_transition'
    assert response.get_json()['error'] == 'This quotation has already been rejected.'
    assert db.session.get(Quotation, quotation.id).status == 'rejected'


def test_expired_quotation_refuses_actions(client, make_quotation):
    quotation = make_quotation(status='sent', valid_until=date.today() - timedelta(days=3))
    response = client.post(_url(quotation, '/actions'), json={'action': 'approve'})
    assert response.status_code == 410
    assert response.get_json()['code'] == 'quotation_expired'


def test_public_routes_need_no_auth_but_are_not_framed(client, make_quotation):
    quotation = make_quotation(status='sent')
    response = client.get(_url(quotation))
    assert response.status_code == 200
    assert response.headers['X-Frame-Options'] == 'DENY'
