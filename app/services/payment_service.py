"""
Payment Service
Payment attempts, gateway reconciliation and the booking payment-status projection
"""

import hashlib
import hmac
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from extensions import db
from app.errors import (Conflict, Forbidden, GatewayError, InvalidState, NotFound,
                        Unauthorized, ValidationError)
from app.models.booking import Booking, BookingAction, BookingPaymentStatus
from app.models.payment import (PAYMENT_METHOD_FIELDS, SETTLED_STATUSES, Payment,
                                PaymentMethod, PaymentStatus, can_gateway_advance,
                                mask_details)
from app.models.user import UserRole
from app.services.booking_service import _notify
from app.services.mock_gateway import MockGateway
from app.services.momo_service import MomoService
from app.services.notification_service import NotificationService


def get_gateway(method):
    """Live MoMo for mobile money when enabled, the mock rail otherwise"""
    if PaymentMethod(method) == PaymentMethod.MOBILE_MONEY and current_app.config.get('MOMO_ENABLED'):
        return MomoService.from_config(current_app.config)
    return MockGateway()


def project_payment_status(booking, payments):
    """
    Derive a booking's payment status from its payments.

    Pure function of the stored records, so any number of writers may run it
    for the same state and agree on the result.
    """
    settled = [p for p in payments if p.status in SETTLED_STATUSES]
    total = sum((p.settled_amount for p in settled), Decimal('0'))

    if settled and total >= booking.amount:
        return BookingPaymentStatus.PAID
    if total > 0:
        return BookingPaymentStatus.PARTIALLY_PAID
    # Ahead of failed: a refunded payment did succeed once
    if any(p.status in (PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED) for p in payments):
        return BookingPaymentStatus.REFUNDED
    if payments and payments[-1].status == PaymentStatus.FAILED:
        return BookingPaymentStatus.FAILED
    return BookingPaymentStatus.PENDING


class PaymentService:
    """Service for processing and reconciling booking payments"""

    @staticmethod
    def get_payment(payment_id):
        payment = db.session.get(Payment, payment_id)
        if not payment:
            raise NotFound(f'Payment not found with id of {payment_id}')
        return payment

    @staticmethod
    def get_by_transaction(transaction_id):
        payment = Payment.query.filter_by(transaction_id=transaction_id).first()
        if not payment:
            raise NotFound(f'Payment not found with transaction ID {transaction_id}')
        return payment

    @staticmethod
    def _can_view(payment, caller):
        return (caller.is_admin
                or payment.user_id == caller.id
                or payment.booking.property.is_owned_by(caller.id))

    @staticmethod
    def validate_method(method, details):
        """Check ``details`` carries every field the payment method needs"""
        try:
            method = PaymentMethod(method)
        except ValueError:
            raise ValidationError('Invalid payment method')

        required = PAYMENT_METHOD_FIELDS.get(method)
        if required is None:
            raise ValidationError(f'{method.value} payments cannot be processed online')
        if not isinstance(details, dict):
            raise ValidationError('payment_details must be an object')

        missing = [field for field in required if not details.get(field)]
        if missing:
            raise ValidationError(f'Missing payment details: {", ".join(missing)}')
        return method

    @staticmethod
    def refresh_booking_status(booking_id):
        """
        Recompute and store the booking's payment status.

        The booking row is locked first so concurrent writers serialize and
        each computes from the latest committed payments.
        """
        booking = PaymentService._lock_booking(booking_id)
        payments = booking.payments.order_by(Payment.id).all()

        new_status = project_payment_status(booking, payments)
        if booking.payment_status != new_status:
            current_app.logger.info(
                f'Booking {booking.id} payment status '
                f'{booking.payment_status.value} -> {new_status.value}'
            )
            booking.payment_status = new_status
        db.session.commit()
        return new_status

    @staticmethod
    def _lock_booking(booking_id):
        booking = db.session.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not booking:
            raise NotFound(f'Booking not found with id of {booking_id}')
        return booking

    @staticmethod
    def _outstanding(booking):
        """Booking amount minus settled money and money still awaiting the gateway"""
        payments = booking.payments.all()
        paid = sum((p.settled_amount for p in payments if p.status in SETTLED_STATUSES),
                   Decimal('0'))
        awaiting = sum((p.amount for p in payments if p.status == PaymentStatus.PENDING),
                       Decimal('0'))
        return max(Decimal(booking.amount) - paid - awaiting, Decimal('0')), awaiting

    @staticmethod
    def _parse_amount(value, limit, field='amount'):
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError(f'{field} must be a number')
        if not amount.is_finite():
            raise ValidationError(f'{field} must be a number')
        if amount <= 0 or amount > limit:
            raise ValidationError(f'{field} must be greater than 0 and at most {limit}')
        return amount

    @staticmethod
    def process_payment(booking_id, caller, method, details, amount=None):
        """
        Charge a booking through the gateway and record the attempt.

        The booking row stays locked from the balance check until the attempt
        is committed, so two concurrent charges cannot both see the full
        balance. Pending attempts count against the balance until the
        gateway settles them.
        """
        booking = PaymentService._lock_booking(booking_id)
        try:
            if booking.user_id != caller.id and not caller.is_admin:
                raise Forbidden(f'User {caller.id} is not authorized to pay for this booking')
            booking.next_status(BookingAction.PAY)
            if booking.payment_status == BookingPaymentStatus.PAID:
                raise InvalidState('Booking is already paid')

            method = PaymentService.validate_method(method, details)
            outstanding, awaiting = PaymentService._outstanding(booking)
            if outstanding <= 0:
                if awaiting > 0:
                    raise InvalidState('A payment for this booking is already awaiting confirmation')
                raise InvalidState('Booking is already paid')
            charge = outstanding if amount is None else \
                PaymentService._parse_amount(amount, outstanding)
        except Exception:
            db.session.rollback()
            raise

        currency = current_app.config.get('DEFAULT_CURRENCY', 'RWF')
        record = {
            'booking_id': booking.id,
            'user_id': caller.id,
            'amount': charge,
            'currency': currency,
            'method': method,
            'details': mask_details(method, details),
        }

        try:
            result = get_gateway(method).request_payment(
                charge, currency, method, details, reference=f'booking-{booking.id}'
            )
        except GatewayError as e:
            current_app.logger.error(f'Payment processing error for booking {booking.id}: {e.message}')
            payment = Payment(
                transaction_id=f'failed_{uuid.uuid4().hex[:16]}',
                status=PaymentStatus.FAILED,
                error=e.message,
                **record
            )
            db.session.add(payment)
            db.session.commit()
            PaymentService.refresh_booking_status(booking.id)
            raise GatewayError(f'Payment processing failed: {e.message}')

        payment = Payment(
            transaction_id=result['transaction_id'],
            status=result['status'],
            gateway_response=result.get('raw'),
            **record
        )
        try:
            db.session.add(payment)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict('Duplicate transaction reported by the payment gateway')

        PaymentService.refresh_booking_status(booking.id)
        current_app.logger.info(
            f'Payment {payment.transaction_id} for booking {booking.id}: {payment.status.value}'
        )

        if payment.status != PaymentStatus.FAILED:
            property_obj = booking.property
            _notify(NotificationService.payment_processed,
                    payment, caller, property_obj, property_obj.landlord)
        return payment

    @staticmethod
    def apply_gateway_status(payment, new_status, raw=None, source='gateway'):
        """
        Move ``payment`` to a gateway-reported status if that is progress.

        Duplicate reports and reports that would move the payment backwards
        (e.g. "failed" after "completed") leave it unchanged. The write is a
        compare-and-set on the status we read, so concurrent writers cannot
        overwrite each other blindly. The booking projection is refreshed
        either way, which also repairs an earlier failed refresh.
        """
        changed = False
        if new_status is not None and new_status != payment.status:
            if can_gateway_advance(payment.status, new_status):
                result = db.session.execute(
                    update(Payment)
                    .where(Payment.id == payment.id, Payment.status == payment.status)
                    .values(status=new_status, gateway_response=raw, updated_at=datetime.utcnow())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount:
                    db.session.commit()
                    changed = True
                    current_app.logger.info(
                        f'Payment {payment.transaction_id} {payment.status.value} -> '
                        f'{new_status.value} ({source})'
                    )
                else:
                    db.session.rollback()
                    current_app.logger.warning(
                        f'Payment {payment.transaction_id} changed concurrently; '
                        f'{source} update to {new_status.value} skipped'
                    )
                db.session.refresh(payment)
            else:
                current_app.logger.warning(
                    f'Ignoring {source} update for {payment.transaction_id}: '
                    f'{payment.status.value} -> {new_status.value} is not allowed'
                )

        PaymentService.refresh_booking_status(payment.booking_id)
        return changed

    @staticmethod
    def verify(transaction_id, caller):
        """Poll the gateway for a payment and reconcile it"""
        payment = PaymentService.get_by_transaction(transaction_id)
        if not PaymentService._can_view(payment, caller):
            raise Forbidden(f'User {caller.id} is not authorized to verify this payment')

        result = get_gateway(payment.method).query_status(transaction_id)
        status = result.get('status')
        changed = PaymentService.apply_gateway_status(payment, status, result.get('raw'), 'verify')

        verification = {
            'transaction_id': transaction_id,
            'status': status.value if status else None,
            'verified': status == PaymentStatus.COMPLETED,
            'changed': changed,
        }
        return payment, verification

    @staticmethod
    def verify_signature(raw_body, signature):
        """
        HMAC-SHA256 check for gateway callbacks.

        Returns True when the body is signed with the configured secret and
        False when no secret is configured.
        """
        secret = current_app.config.get('MOMO_WEBHOOK_SECRET')
        if not secret:
            return False
        if not signature:
            raise Unauthorized('Missing callback signature')
        expected = hmac.new(secret.encode('utf-8'), raw_body or b'', hashlib.sha256).hexdigest()
        if not hmac.compare_digest(expected, signature):
            raise Unauthorized('Invalid callback signature')
        return True

    @staticmethod
    def handle_webhook(payload, signed=False):
        """
        Apply an asynchronous gateway callback.

        Only a signed callback's status is applied as reported. An unsigned
        callback just names the transaction, and its status is fetched from
        the gateway the same way verify() does. Delivery is at-least-once
        and unordered; see apply_gateway_status.
        """
        if not isinstance(payload, dict):
            raise ValidationError('Webhook payload must be a JSON object')

        transaction_id = (payload.get('transactionId') or payload.get('transaction_id')
                          or payload.get('externalId') or payload.get('referenceId'))
        if not transaction_id:
            raise NotFound('Webhook payload does not reference a known transaction')
        payment = PaymentService.get_by_transaction(str(transaction_id))

        status = MomoService.normalize_status(payload.get('status'))
        if status is None:
            raise ValidationError('Missing or unknown payment status')

        if signed:
            changed = PaymentService.apply_gateway_status(payment, status, payload, 'webhook')
        else:
            result = get_gateway(payment.method).query_status(payment.transaction_id)
            changed = PaymentService.apply_gateway_status(
                payment, result.get('status'), result.get('raw'), 'webhook'
            )
        return payment, changed

    @staticmethod
    def refund(payment_id, caller, amount=None, reason=None):
        payment = PaymentService.get_payment(payment_id)
        if not payment.booking.property.is_owned_by(caller.id) and not caller.is_admin:
            raise Forbidden(f'User {caller.id} is not authorized to process this refund')
        if payment.status != PaymentStatus.COMPLETED:
            raise InvalidState('Payment cannot be refunded')

        refund_amount = payment.amount if amount is None else \
            PaymentService._parse_amount(amount, payment.amount)
        new_status = PaymentStatus.REFUNDED if refund_amount >= payment.amount \
            else PaymentStatus.PARTIALLY_REFUNDED

        result = db.session.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == PaymentStatus.COMPLETED)
            .values(
                status=new_status,
                refund_amount=refund_amount,
                refund_reason=reason,
                refunded_at=datetime.utcnow(),
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.session.rollback()
            raise InvalidState('Payment was modified by another request, please retry')
        db.session.commit()
        db.session.refresh(payment)

        current_app.logger.info(
            f'Payment {payment.transaction_id} {new_status.value} ({refund_amount}) by user {caller.id}'
        )
        PaymentService.refresh_booking_status(payment.booking_id)
        _notify(NotificationService.payment_refunded, payment, payment.payer)
        return payment

    @staticmethod
    def list_for_booking(booking_id, caller):
        booking = db.session.get(Booking, booking_id)
        if not booking:
            raise NotFound(f'Booking not found with id of {booking_id}')
        if (booking.user_id != caller.id
                and not booking.property.is_owned_by(caller.id)
                and not caller.is_admin):
            raise Forbidden(f'User {caller.id} is not authorized to access these payments')
        return booking.payments.order_by(Payment.created_at.desc()).all()

    @staticmethod
    def get(payment_id, caller):
        payment = PaymentService.get_payment(payment_id)
        if not PaymentService._can_view(payment, caller):
            raise Forbidden(f'User {caller.id} is not authorized to access this payment')
        return payment

    @staticmethod
    def history(caller):
        return Payment.query.filter_by(user_id=caller.id) \
            .order_by(Payment.created_at.desc()).all()

    @staticmethod
    def list_refunds(caller):
        if caller.role != UserRole.ADMIN:
            raise Forbidden('Insufficient permissions')
        return Payment.query.filter(
            Payment.status.in_([PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED])
        ).order_by(Payment.refunded_at.desc()).all()
