"""
Payments Routes
Reads, verification, refunds and the mobile-money gateway callback
"""

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from extensions import limiter
from app.services.payment_service import PaymentService
from app.utils.auth import admin_required, get_current_user

payments_bp = Blueprint('payments', __name__)


@payments_bp.route('/history', methods=['GET'])
@jwt_required()
def get_payment_history():
    """Payments made by the current user"""
    user = get_current_user()
    payments = PaymentService.history(user)

    return jsonify({
        'count': len(payments),
        'payments': [payment.to_dict(include_booking=True) for payment in payments]
    }), 200


@payments_bp.route('/refunds', methods=['GET'])
@admin_required()
def get_refunds():
    user = get_current_user()
    payments = PaymentService.list_refunds(user)

    return jsonify({
        'count': len(payments),
        'refunds': [payment.to_dict() for payment in payments]
    }), 200


@payments_bp.route('/<int:payment_id>', methods=['GET'])
@jwt_required()
def get_payment(payment_id):
    user = get_current_user()
    payment = PaymentService.get(payment_id, user)
    return jsonify({'payment': payment.to_dict(include_booking=True)}), 200


@payments_bp.route('/verify/<transaction_id>', methods=['GET'])
@jwt_required()
def verify_payment(transaction_id):
    """Ask the gateway for the latest status of a transaction"""
    user = get_current_user()
    payment, verification = PaymentService.verify(transaction_id, user)

    return jsonify({
        'message': 'Payment verified',
        'payment': payment.to_dict(),
        'verification': verification,
        'booking_payment_status': payment.booking.payment_status.value
    }), 200


@payments_bp.route('/<int:payment_id>/refund', methods=['POST'])
@jwt_required()
def refund_payment(payment_id):
    """Refund a completed payment in full or in part"""
    user = get_current_user()
    data = request.get_json(silent=True) or {}

    payment = PaymentService.refund(
        payment_id, user, amount=data.get('amount'), reason=data.get('reason')
    )

    return jsonify({
        'message': 'Refund processed successfully',
        'payment': payment.to_dict(),
        'booking_payment_status': payment.booking.payment_status.value
    }), 200


@payments_bp.route('/webhook', methods=['POST'])
@limiter.limit("300 per hour")
def momo_webhook():
    """Handle mobile-money gateway callbacks"""
    signed = PaymentService.verify_signature(request.get_data(),
                                             request.headers.get('X-Callback-Signature'))

    payment, changed = PaymentService.handle_webhook(request.get_json(silent=True), signed=signed)

    return jsonify({
        'message': 'Webhook processed',
        'transaction_id': payment.transaction_id,
        'status': payment.status.value,
        'changed': changed
    }), 200
