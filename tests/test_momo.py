"""Tests for the MTN MoMo gateway client, with the HTTP layer stubbed out."""

import json
from decimal import Decimal

import pytest
import requests

from app.models import Booking, BookingPaymentStatus, Payment, PaymentStatus
from app.services.momo_service import MomoService

MOMO = {'phone': '0788 123 456', 'network': 'MTN'}


class FakeResponse:
    def __init__(self, status_code, payload=None, text=''):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError('No JSON body')
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f'{self.status_code} Error')


@pytest.fixture
def momo(app, monkeypatch):
    """Live MoMo path switched on; records every call and replays canned responses"""
    app.config.update(
        MOMO_ENABLED=True,
        MOMO_BASE_URL='https://momo.test',
        MOMO_SUBSCRIPTION_KEY='sub-key',
        MOMO_USER_ID='api-user',
        MOMO_API_KEY='api-key',
        PAYMENT_GATEWAY_TIMEOUT=5,
    )
    calls = []
    replies = {'requesttopay': FakeResponse(202), 'status': FakeResponse(200, {'status': 'PENDING'})}

    def fake_post(url, **kwargs):
        calls.append(('POST', url, kwargs))
        if url.endswith('/collection/token/'):
            return FakeResponse(200, {'access_token': 'token-123'})
        reply = replies['requesttopay']
        if isinstance(reply, Exception):
            raise reply
        return reply

    def fake_get(url, **kwargs):
        calls.append(('GET', url, kwargs))
        reply = replies['status']
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(requests, 'post', fake_post)
    monkeypatch.setattr(requests, 'get', fake_get)
    return {'calls': calls, 'replies': replies}


@pytest.fixture
def booking(make_booking):
    return make_booking(start=10, nights=3)


def _pay(client, headers, booking_id):
    return client.post(f'/api/bookings/{booking_id}/payments', headers=headers, json={
        'payment_method': 'mobile_money',
        'payment_details': MOMO,
    })


def test_request_to_pay_is_pending(client, auth, guest, booking, momo):
    response = _pay(client, auth(guest), booking.id)

    assert response.status_code == 201
    payment = response.get_json()['payment']
    assert payment['status'] == 'pending'

    method, url, kwargs = momo['calls'][-1]
    assert url == 'https://momo.test/collection/v1_0/requesttopay'
    assert kwargs['timeout'] == 5
    assert kwargs['headers']['Authorization'] == 'Bearer token-123'
    assert kwargs['headers']['X-Reference-Id'] == payment['transaction_id']
    assert kwargs['json']['payer'] == {'partyIdType': 'MSISDN', 'partyId': '250788123456'}
    assert Decimal(kwargs['json']['amount']) == Decimal('150')


def test_timeout_records_failed_payment(client, auth, guest, booking, momo):
    momo['replies']['requesttopay'] = requests.exceptions.Timeout('read timed out')

    response = _pay(client, auth(guest), booking.id)

    assert response.status_code == 502
    assert response.get_json()['message'] == 'Payment processing failed: MoMo request timed out'
    payment = Payment.query.filter_by(booking_id=booking.id).one()
    assert payment.status == PaymentStatus.FAILED
    assert payment.error == 'MoMo request timed out'
    assert Booking.query.filter_by(id=booking.id).one().payment_status == BookingPaymentStatus.FAILED


def test_server_error_records_failed_payment(client, auth, guest, booking, momo):
    momo['replies']['requesttopay'] = FakeResponse(503)

    response = _pay(client, auth(guest), booking.id)

    assert response.status_code == 502
    assert Payment.query.filter_by(booking_id=booking.id).one().status == PaymentStatus.FAILED


def test_rejected_request_is_failed_payment(client, auth, guest, booking, momo):
    momo['replies']['requesttopay'] = FakeResponse(400, text='{"code": "PAYER_NOT_FOUND"}')

    response = _pay(client, auth(guest), booking.id)

    assert response.status_code == 201
    assert response.get_json()['payment']['status'] == 'failed'
    assert response.get_json()['booking']['payment_status'] == 'failed'


def test_token_failure_is_gateway_error(client, auth, guest, booking, monkeypatch, momo):
    monkeypatch.setattr(requests, 'post', lambda url, **kwargs: FakeResponse(401))

    response = _pay(client, auth(guest), booking.id)

    assert response.status_code == 502
    assert 'Failed to authenticate with MoMo API' in response.get_json()['message']


def test_verify_polls_momo(client, auth, guest, booking, momo):
    transaction_id = _pay(client, auth(guest), booking.id).get_json()['payment']['transaction_id']
    momo['replies']['status'] = FakeResponse(200, {'status': 'SUCCESSFUL', 'financialTransactionId': '42'})

    response = client.get(f'/api/payments/verify/{transaction_id}', headers=auth(guest))

    assert response.status_code == 200
    assert response.get_json()['verification']['verified'] is True
    assert response.get_json()['booking_payment_status'] == 'paid'
    method, url, _ = momo['calls'][-1]
    assert (method, url) == ('GET', f'https://momo.test/collection/v1_0/requesttopay/{transaction_id}')


def test_verify_timeout_leaves_payment_pending(client, auth, guest, booking, momo):
    transaction_id = _pay(client, auth(guest), booking.id).get_json()['payment']['transaction_id']
    momo['replies']['status'] = requests.exceptions.Timeout()

    response = client.get(f'/api/payments/verify/{transaction_id}', headers=auth(guest))

    assert response.status_code == 502
    assert Payment.query.filter_by(transaction_id=transaction_id).one().status == PaymentStatus.PENDING


def test_unsigned_callback_uses_momo_status(client, auth, guest, booking, momo):
    transaction_id = _pay(client, auth(guest), booking.id).get_json()['payment']['transaction_id']
    callback = json.dumps({'externalId': transaction_id, 'status': 'SUCCESSFUL'})

    still_pending = client.post('/api/payments/webhook', data=callback, content_type='application/json')
    assert still_pending.get_json()['status'] == 'pending'

    momo['replies']['status'] = FakeResponse(200, {'status': 'SUCCESSFUL'})
    settled = client.post('/api/payments/webhook', data=callback, content_type='application/json')
    assert settled.get_json()['status'] == 'completed'
    assert settled.get_json()['changed'] is True


@pytest.mark.parametrize('raw, expected', [
    ('SUCCESSFUL', PaymentStatus.COMPLETED),
    ('successful', PaymentStatus.COMPLETED),
    ('REJECTED', PaymentStatus.FAILED),
    ('TIMEOUT', PaymentStatus.FAILED),
    ('PENDING', PaymentStatus.PENDING),
    ('completed', PaymentStatus.COMPLETED),
    ('refunded', PaymentStatus.REFUNDED),
    ('ONGOING', None),
    ('', None),
    (None, None),
])
def test_normalize_status(raw, expected):
    assert MomoService.normalize_status(raw) == expected


@pytest.mark.parametrize('phone, expected', [
    ('0788123456', '250788123456'),
    ('+250 788 123 456', '250788123456'),
    ('788123456', '250788123456'),
])
def test_normalize_phone(phone, expected):
    assert MomoService.normalize_phone(phone) == expected
