"""
Bookings Blueprint
"""

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from app.services.booking_service import BookingService
from app.services.payment_service import PaymentService
from app.utils.auth import get_current_user

bookings_bp = Blueprint('bookings', __name__)


@bookings_bp.route('/', methods=['GET'])
@jwt_required()
def get_bookings():
    """Bookings visible to the current user"""
    user = get_current_user()
    bookings = BookingService.list_for(user)

    return jsonify({
        'count': len(bookings),
        'bookings': [booking.to_dict(include_property=True) for booking in bookings]
    }), 200


@bookings_bp.route('/<int:booking_id>', methods=['GET'])
@jwt_required()
def get_booking(booking_id):
    """Get booking details"""
    user = get_current_user()
    booking = BookingService.get(booking_id, user)

    return jsonify({
        'booking': booking.to_dict(include_property=True, include_guest=True)
    }), 200


@bookings_bp.route('/<int:booking_id>', methods=['PUT'])
@jwt_required()
def update_booking(booking_id):
    """Change dates, guests or special requests"""
    user = get_current_user()
    booking = BookingService.update(booking_id, user, request.get_json(silent=True) or {})

    return jsonify({
        'message': 'Booking updated successfully',
        'booking': booking.to_dict()
    }), 200


@bookings_bp.route('/<int:booking_id>/cancel', methods=['PUT'])
@jwt_required()
def cancel_booking(booking_id):
    """Cancel a booking"""
    user = get_current_user()
    data = request.get_json(silent=True) or {}
    booking = BookingService.cancel(booking_id, user, reason=data.get('reason'))

    return jsonify({
        'message': 'Booking cancelled successfully',
        'booking': booking.to_dict()
    }), 200


@bookings_bp.route('/<int:booking_id>/complete', methods=['PUT'])
@jwt_required()
def complete_booking(booking_id):
    """Mark a stay as completed (landlord or admin)"""
    user = get_current_user()
    booking = BookingService.complete(booking_id, user)

    return jsonify({
        'message': 'Booking completed successfully',
        'booking': booking.to_dict()
    }), 200


@bookings_bp.route('/<int:booking_id>', methods=['DELETE'])
@jwt_required()
def delete_booking(booking_id):
    user = get_current_user()
    BookingService.delete(booking_id, user)
    return jsonify({'message': 'Booking deleted successfully'}), 200


@bookings_bp.route('/<int:booking_id>/payments', methods=['POST'])
@jwt_required()
def create_payment(booking_id):
    """Pay for a booking"""
    user = get_current_user()
    data = request.get_json(silent=True) or {}

    payment = PaymentService.process_payment(
        booking_id,
        user,
        data.get('payment_method'),
        data.get('payment_details'),
        amount=data.get('amount'),
    )
    booking = payment.booking

    return jsonify({
        'message': 'Payment processed',
        'payment': payment.to_dict(),
        'booking': {
            'id': booking.id,
            'status': booking.status.value,
            'payment_status': booking.payment_status.value
        }
    }), 201


@bookings_bp.route('/<int:booking_id>/payments', methods=['GET'])
@jwt_required()
def get_booking_payments(booking_id):
    user = get_current_user()
    payments = PaymentService.list_for_booking(booking_id, user)

    return jsonify({
        'count': len(payments),
        'payments': [payment.to_dict() for payment in payments]
    }), 200
