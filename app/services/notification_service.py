"""
Notification Service
Fire-and-forget email (and optional realtime push) for booking and payment events
"""

from concurrent.futures import ThreadPoolExecutor

from flask import current_app
from flask_mail import Message

import extensions
from extensions import mail


_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix='notify')


def _render(title, lines, link=None):
    items = ''.join(f'<p>{line}</p>' for line in lines)
    button = ''
    if link:
        button = f"""
                <div style="margin: 30px 0;">
                    <a href="{link}"
                       style="background-color: #FF5A5F; color: white; padding: 12px 30px;
                              text-decoration: none; border-radius: 5px; display: inline-block;">
                        View Details
                    </a>
                </div>"""
    return f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                <h2 style="color: #FF5A5F;">{title}</h2>
                {items}{button}
                <hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">
                <p style="color: #999; font-size: 12px;">
                    This is an automated message. Please do not reply to this email.
                </p>
            </div>
        </body>
        </html>
        """


def _deliver(app, recipient, subject, body, html_body, user_id):
    """Runs detached from the request. Failures are logged, never raised."""
    with app.app_context():
        try:
            msg = Message(subject=subject, recipients=[recipient], body=body, html=html_body)
            mail.send(msg)
        except Exception:
            app.logger.exception(f'Failed to send email "{subject}" to {recipient}')

        if extensions.pusher_client is not None and user_id is not None:
            try:
                extensions.pusher_client.trigger(
                    f'user-{user_id}', 'notification', {'subject': subject, 'message': body}
                )
            except Exception:
                app.logger.exception(f'Failed to push notification to user {user_id}')


class NotificationService:
    """Hands messages to the mail/push collaborators without blocking the caller"""

    @staticmethod
    def notify(recipient, subject, body, html_body=None, user_id=None):
        """Queue one notification. Never raises."""
        if not recipient:
            return False
        try:
            app = current_app._get_current_object()
            if app.config.get('NOTIFICATIONS_ASYNC', True):
                _executor.submit(_deliver, app, recipient, subject, body, html_body, user_id)
            else:
                _deliver(app, recipient, subject, body, html_body, user_id)
            return True
        except Exception:
            current_app.logger.exception(f'Could not queue notification "{subject}"')
            return False

    @staticmethod
    def _frontend(path):
        return f"{current_app.config.get('FRONTEND_URL', 'http://localhost:3000')}{path}"

    @staticmethod
    def booking_created(booking, guest, property_obj, landlord):
        lines = [
            f'Property: {property_obj.title}',
            f'Check-in: {booking.check_in}',
            f'Check-out: {booking.check_out}',
            f'Amount: {booking.amount} {current_app.config.get("DEFAULT_CURRENCY")}',
            f'Booking ID: #{booking.id}',
        ]
        NotificationService.notify(
            guest.email,
            f'Booking Received - {property_obj.title}',
            '\n'.join([f'Dear {guest.name}, your booking request has been received.'] + lines),
            _render('Booking Received', lines, NotificationService._frontend(f'/bookings/{booking.id}')),
            user_id=guest.id,
        )
        if landlord is not None:
            NotificationService.notify(
                landlord.email,
                f'New Booking - {property_obj.title}',
                '\n'.join([f'Dear {landlord.name}, {guest.name} has booked your property.'] + lines),
                _render('New Booking', lines, NotificationService._frontend(f'/host/bookings/{booking.id}')),
                user_id=landlord.id,
            )

    @staticmethod
    def booking_cancelled(booking, guest, property_obj, landlord):
        lines = [
            f'Property: {property_obj.title}',
            f'Dates: {booking.check_in} to {booking.check_out}',
        ]
        if booking.cancellation_reason:
            lines.append(f'Reason: {booking.cancellation_reason}')
        for user in (guest, landlord):
            if user is None:
                continue
            NotificationService.notify(
                user.email,
                f'Booking Cancelled - {property_obj.title}',
                '\n'.join([f'Dear {user.name}, booking #{booking.id} has been cancelled.'] + lines),
                _render('Booking Cancelled', lines),
                user_id=user.id,
            )

    @staticmethod
    def booking_completed(booking, guest, property_obj):
        lines = [f'Thank you for staying at {property_obj.title}.']
        NotificationService.notify(
            guest.email,
            f'Stay Completed - {property_obj.title}',
            '\n'.join([f'Dear {guest.name},'] + lines),
            _render('Stay Completed', lines),
            user_id=guest.id,
        )

    @staticmethod
    def payment_processed(payment, payer, property_obj, landlord):
        lines = [
            f'Amount: {payment.amount} {payment.currency}',
            f'Payment Method: {payment.method.value}',
            f'Transaction ID: {payment.transaction_id}',
            f'Status: {payment.status.value}',
        ]
        NotificationService.notify(
            payer.email,
            'Payment Confirmation',
            '\n'.join([f'Dear {payer.name}, your payment for {property_obj.title} was processed.'] + lines),
            _render('Payment Confirmation', lines),
            user_id=payer.id,
        )
        if landlord is not None:
            NotificationService.notify(
                landlord.email,
                'Payment Notification',
                '\n'.join([f'Dear {landlord.name}, a payment was made for {property_obj.title}.'] + lines),
                _render('Payment Notification', lines),
                user_id=landlord.id,
            )

    @staticmethod
    def payment_refunded(payment, payer):
        lines = [
            f'Refunded: {payment.refund_amount} {payment.currency}',
            f'Transaction ID: {payment.transaction_id}',
        ]
        NotificationService.notify(
            payer.email,
            'Refund Processed',
            '\n'.join([f'Dear {payer.name}, your refund has been processed.'] + lines),
            _render('Refund Processed', lines),
            user_id=payer.id,
        )
