"""Tests for the mobile-money gateway callback."""

import hashlib
import hmac
import json

import pytest

from app.models import Booking, BookingPaymentStatus, Payment, PaymentStatus
from app.services.mock_gateway import MockGateway

MOMO = {'phone': '0788123456', 'network': 'MTN'}
SECRET = 's3cret'


@pytest.fixture
def pending_payment(client, auth, guest, make_booking):
    """Mobile-money payment waiting for the gateway, booking amount 150"""
    booking = make_booking(start=10, nights=3)
    response = client.post(f'/api/bookings/{booking.id}/payments', headers=auth(guest), json={
        'payment_method': 'mobile_money',
        'payment_details': MOMO,
    })
    return Payment.query.filter_by(id=response.get_json()['payment']['id']).one()


def _callback(client, payload, headers=None):
    return client.post('/api/payments/webhook', data=json.dumps(payload),
                       content_type='application/json', headers=headers or {})


def _signed_callback(app, client, payload):
    app.config['MOMO_WEBHOOK_SECRET'] = SECRET
    body = json.dumps(payload)
    signature = hmac.new(SECRET.encode('utf-8'), body.encode('utf-8'), hashlib.sha256).hexdigest()
    return client.post('/api/payments/webhook', data=body, content_type='application/json',
                       headers={'X-Callback-Signature': signature})


def _booking_status(payment):
    return Booking.query.filter_by(id=payment.booking_id).one().payment_status


def test_successful_callback_settles_payment(client, pending_payment):
    MockGateway.settle(pending_payment.transaction_id, PaymentStatus.COMPLETED)

    response = _callback(client, {
        'transactionId': pending_payment.transaction_id,
        'status': 'SUCCESSFUL',
    })

    assert response.status_code == 200
    assert response.get_json()['status'] == 'completed'
    assert response.get_json()['changed'] is True
    assert _booking_status(pending_payment) == BookingPaymentStatus.PAID


def test_unsigned_callback_cannot_claim_success(client, pending_payment):
    # The gateway still reports the request as pending
    response = _callback(client, {
        'transactionId': pending_payment.transaction_id,
        'status': 'SUCCESSFUL',
    })

    assert response.status_code == 200
    assert response.get_json()['status'] == 'pending'
    assert response.get_json()['changed'] is False
    assert Payment.query.filter_by(id=pending_payment.id).one().status == PaymentStatus.PENDING
    assert _booking_status(pending_payment) == BookingPaymentStatus.PENDING


def test_duplicate_callback_is_idempotent(client, pending_payment):
    MockGateway.settle(pending_payment.transaction_id, PaymentStatus.COMPLETED)
    payload = {'transactionId': pending_payment.transaction_id, 'status': 'SUCCESSFUL'}
    _callback(client, payload)

    response = _callback(client, payload)

    assert response.status_code == 200
    assert response.get_json()['changed'] is False
    assert Payment.query.filter_by(id=pending_payment.id).one().status == PaymentStatus.COMPLETED
    assert _booking_status(pending_payment) == BookingPaymentStatus.PAID


def test_late_failure_does_not_undo_completion(app, client, pending_payment):
    _signed_callback(app, client, {'transactionId': pending_payment.transaction_id,
                                   'status': 'SUCCESSFUL'})

    response = _signed_callback(app, client, {'transactionId': pending_payment.transaction_id,
                                              'status': 'FAILED'})

    assert response.status_code == 200
    assert response.get_json()['status'] == 'completed'
    assert response.get_json()['changed'] is False
    assert _booking_status(pending_payment) == BookingPaymentStatus.PAID


def test_failure_then_success(client, pending_payment):
    MockGateway.settle(pending_payment.transaction_id, PaymentStatus.FAILED)
    failed = _callback(client, {'externalId': pending_payment.transaction_id, 'status': 'REJECTED'})
    assert failed.get_json()['status'] == 'failed'
    assert _booking_status(pending_payment) == BookingPaymentStatus.FAILED

    MockGateway.settle(pending_payment.transaction_id, PaymentStatus.COMPLETED)
    settled = _callback(client, {'referenceId': pending_payment.transaction_id, 'status': 'SUCCESSFUL'})
    assert settled.get_json()['status'] == 'completed'
    assert _booking_status(pending_payment) == BookingPaymentStatus.PAID


def test_callback_cannot_touch_refunded_payment(client, auth, landlord, pending_payment):
    MockGateway.settle(pending_payment.transaction_id, PaymentStatus.COMPLETED)
    _callback(client, {'transactionId': pending_payment.transaction_id, 'status': 'SUCCESSFUL'})
    client.post(f'/api/payments/{pending_payment.id}/refund', headers=auth(landlord))

    response = _callback(client, {'transactionId': pending_payment.transaction_id, 'status': 'SUCCESSFUL'})

    assert response.get_json()['status'] == 'refunded'
    assert _booking_status(pending_payment) == BookingPaymentStatus.REFUNDED


@pytest.mark.parametrize('payload', [
    {'transactionId': 'does-not-exist', 'status': 'SUCCESSFUL'},
    {'status': 'SUCCESSFUL'},
    {'transactionId': '', 'status': 'SUCCESSFUL'},
])
def test_uncorrelated_callback_not_found(client, pending_payment, payload):
    response = _callback(client, payload)

    assert response.status_code == 404
    assert Payment.query.filter_by(id=pending_payment.id).one().status == PaymentStatus.PENDING


@pytest.mark.parametrize('status', [None, 'MAYBE'])
def test_callback_status_must_be_recognised(client, pending_payment, status):
    response = _callback(client, {'transactionId': pending_payment.transaction_id, 'status': status})

    assert response.status_code == 400
    assert Payment.query.filter_by(id=pending_payment.id).one().status == PaymentStatus.PENDING


def test_callback_body_must_be_an_object(client, pending_payment):
    assert _callback(client, ['not', 'an', 'object']).status_code == 400


def test_signature_checked_when_secret_configured(app, client, pending_payment):
    app.config['MOMO_WEBHOOK_SECRET'] = SECRET
    body = json.dumps({'transactionId': pending_payment.transaction_id, 'status': 'SUCCESSFUL'})

    unsigned = client.post('/api/payments/webhook', data=body, content_type='application/json')
    assert unsigned.status_code == 401

    forged = client.post('/api/payments/webhook', data=body, content_type='application/json',
                         headers={'X-Callback-Signature': 'deadbeef'})
    assert forged.status_code == 401
    assert Payment.query.filter_by(id=pending_payment.id).one().status == PaymentStatus.PENDING

    signature = hmac.new(SECRET.encode('utf-8'), body.encode('utf-8'), hashlib.sha256).hexdigest()
    signed = client.post('/api/payments/webhook', data=body, content_type='application/json',
                         headers={'X-Callback-Signature': signature})
    assert signed.status_code == 200
    assert signed.get_json()['status'] == 'completed'
