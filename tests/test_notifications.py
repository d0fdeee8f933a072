"""Notifications are best effort: failures are logged and never reach the caller."""

import extensions
from extensions import mail
from app.services.notification_service import NotificationService


class FakePusher:
    def __init__(self, fail=False):
        self.fail = fail
        self.events = []

    def trigger(self, channel, event, data):
        if self.fail:
            raise RuntimeError('pusher is down')
        self.events.append((channel, event, data))


def test_booking_emails_guest_and_landlord(client, auth, guest, property_obj, day):
    with mail.record_messages() as outbox:
        response = client.post(f'/api/properties/{property_obj.id}/bookings', headers=auth(guest), json={
            'check_in': day(10).isoformat(),
            'check_out': day(12).isoformat(),
        })

    assert response.status_code == 201
    recipients = sorted(msg.recipients[0] for msg in outbox)
    assert recipients == ['guest@example.com', 'landlord@example.com']


def test_mail_failure_does_not_fail_booking(client, auth, guest, property_obj, day, monkeypatch):
    def broken_send(message):
        raise ConnectionError('SMTP unavailable')

    monkeypatch.setattr(mail, 'send', broken_send)

    response = client.post(f'/api/properties/{property_obj.id}/bookings', headers=auth(guest), json={
        'check_in': day(10).isoformat(),
        'check_out': day(12).isoformat(),
    })

    assert response.status_code == 201


def test_push_sent_to_user_channel(app, monkeypatch):
    pusher = FakePusher()
    monkeypatch.setattr(extensions, 'pusher_client', pusher)

    assert NotificationService.notify('someone@example.com', 'Hello', 'Body', user_id=7)

    assert pusher.events == [('user-7', 'notification', {'subject': 'Hello', 'message': 'Body'})]


def test_push_failure_is_swallowed(app, monkeypatch):
    monkeypatch.setattr(extensions, 'pusher_client', FakePusher(fail=True))

    assert NotificationService.notify('someone@example.com', 'Hello', 'Body', user_id=7)


def test_missing_recipient_is_skipped(app):
    assert NotificationService.notify(None, 'Hello', 'Body') is False


def test_notification_helper_errors_are_contained(client, auth, guest, property_obj, day, monkeypatch):
    def explode(*args):
        raise RuntimeError('template bug')

    monkeypatch.setattr(NotificationService, 'booking_created', staticmethod(explode))

    response = client.post(f'/api/properties/{property_obj.id}/bookings', headers=auth(guest), json={
        'check_in': day(10).isoformat(),
        'check_out': day(12).isoformat(),
    })

    assert response.status_code == 201
