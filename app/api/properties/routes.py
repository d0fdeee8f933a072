"""
Property Routes
Listings, availability and the bookings nested under a property
"""

from decimal import Decimal, InvalidOperation

from flask import Blueprint, current_app, request, jsonify
from flask_jwt_extended import jwt_required

from extensions import db, limiter
from app.errors import Forbidden, NotFound, ValidationError
from app.models.booking import Booking
from app.models.property import Property, PropertyType
from app.models.user import UserRole
from app.services.availability_service import AvailabilityService
from app.services.booking_service import BookingService
from app.utils.auth import admin_required, get_current_user, roles_required
from app.utils.dates import parse_date

properties_bp = Blueprint('properties', __name__)

EDITABLE_FIELDS = ('title', 'description', 'property_type', 'address', 'city', 'country',
                   'price', 'max_guests', 'is_available')


def _get_property(property_id):
    property_obj = db.session.get(Property, property_id)
    if not property_obj:
        raise NotFound(f'Property not found with id of {property_id}')
    return property_obj


def _apply_fields(property_obj, data):
    """Validate and copy listing fields from the request body"""
    for field in EDITABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]

        if field == 'title':
            if not value or len(value) > 200:
                raise ValidationError('Title is required and cannot be more than 200 characters')
        elif field == 'property_type':
            try:
                value = PropertyType(value)
            except ValueError:
                raise ValidationError('Invalid property type')
        elif field == 'price':
            try:
                value = Decimal(str(value))
            except (InvalidOperation, ValueError):
                raise ValidationError('Price must be a number')
            if not value.is_finite():
                raise ValidationError('Price must be a number')
            if value < 0:
                raise ValidationError('Price cannot be negative')
        elif field == 'max_guests' and value is not None:
            if not isinstance(value, int) or value < 1:
                raise ValidationError('max_guests must be a positive whole number')
        elif field == 'is_available':
            value = bool(value)

        setattr(property_obj, field, value)


@properties_bp.route('/', methods=['POST'])
@roles_required(UserRole.LANDLORD, UserRole.ADMIN)
def create_property():
    """Create a new listing"""
    user = get_current_user()
    data = request.get_json(silent=True) or {}

    for field in ('title', 'price'):
        if data.get(field) in (None, ''):
            raise ValidationError(f'{field} is required')

    property_obj = Property(landlord_id=user.id)
    _apply_fields(property_obj, data)

    db.session.add(property_obj)
    db.session.commit()
    current_app.logger.info(f'Property {property_obj.id} created by user {user.id}')

    return jsonify({
        'message': 'Property created successfully',
        'property': property_obj.to_dict()
    }), 201


@properties_bp.route('/', methods=['GET'])
@limiter.limit("100 per hour")
def get_properties():
    """Get verified, available listings with simple filters"""
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('per_page', 20, type=int), 100)

    query = Property.query.filter_by(is_verified=True, is_available=True)

    city = request.args.get('city')
    if city:
        query = query.filter(Property.city.ilike(f'%{city}%'))

    min_price = request.args.get('min_price', type=float)
    if min_price is not None:
        query = query.filter(Property.price >= min_price)

    max_price = request.args.get('max_price', type=float)
    if max_price is not None:
        query = query.filter(Property.price <= max_price)

    guests = request.args.get('guests', type=int)
    if guests:
        query = query.filter(Property.max_guests >= guests)

    landlord_id = request.args.get('landlord_id', type=int)
    if landlord_id:
        query = query.filter(Property.landlord_id == landlord_id)

    pagination = query.order_by(Property.created_at.desc()).paginate(
        page=page, per_page=per_page, error_out=False
    )

    return jsonify({
        'properties': [p.to_dict() for p in pagination.items],
        'total': pagination.total,
        'pages': pagination.pages,
        'current_page': page
    }), 200


@properties_bp.route('/<int:property_id>', methods=['GET'])
def get_property(property_id):
    """Get a single listing"""
    property_obj = _get_property(property_id)
    return jsonify({'property': property_obj.to_dict(include_landlord=True)}), 200


@properties_bp.route('/<int:property_id>', methods=['PUT'])
@jwt_required()
def update_property(property_id):
    """Update a listing (owner or admin)"""
    user = get_current_user()
    property_obj = _get_property(property_id)
    if not property_obj.is_owned_by(user.id) and not user.is_admin:
        raise Forbidden(f'User {user.id} is not authorized to update this property')

    _apply_fields(property_obj, request.get_json(silent=True) or {})
    db.session.commit()

    return jsonify({
        'message': 'Property updated successfully',
        'property': property_obj.to_dict()
    }), 200


@properties_bp.route('/<int:property_id>/verify', methods=['PUT'])
@admin_required()
def verify_property(property_id):
    """Mark a listing as verified so it can take bookings"""
    user = get_current_user()
    property_obj = _get_property(property_id)
    data = request.get_json(silent=True) or {}

    property_obj.is_verified = bool(data.get('is_verified', True))
    db.session.commit()
    current_app.logger.info(
        f'Property {property_id} verification set to {property_obj.is_verified} by admin {user.id}'
    )

    return jsonify({
        'message': 'Property verification updated',
        'property': property_obj.to_dict()
    }), 200


@properties_bp.route('/<int:property_id>/availability', methods=['GET'])
def check_availability(property_id):
    """Is the listing free for ?check_in=YYYY-MM-DD&check_out=YYYY-MM-DD"""
    property_obj = _get_property(property_id)
    check_in = parse_date(request.args.get('check_in'), 'check_in')
    check_out = parse_date(request.args.get('check_out'), 'check_out')
    if check_out <= check_in:
        raise ValidationError('Check-out date must be after check-in date')

    conflict = AvailabilityService.find_conflict(property_id, check_in, check_out)
    reason = None
    if isinstance(conflict, Booking):
        reason = 'booked'
    elif conflict is not None:
        reason = 'blocked'

    return jsonify({
        'property_id': property_id,
        'check_in': check_in.isoformat(),
        'check_out': check_out.isoformat(),
        'available': conflict is None and property_obj.is_available and property_obj.is_verified,
        'reason': reason
    }), 200


@properties_bp.route('/<int:property_id>/bookings', methods=['POST'])
@jwt_required()
def create_booking(property_id):
    """Book a property"""
    user = get_current_user()
    booking = BookingService.create(property_id, user, request.get_json(silent=True) or {})

    return jsonify({
        'message': 'Booking created successfully',
        'booking': booking.to_dict(include_property=True)
    }), 201


@properties_bp.route('/<int:property_id>/bookings', methods=['GET'])
@jwt_required()
def get_property_bookings(property_id):
    """Bookings of one property (landlord or admin)"""
    user = get_current_user()
    bookings = BookingService.list_for_property(property_id, user)

    return jsonify({
        'count': len(bookings),
        'bookings': [booking.to_dict(include_guest=True) for booking in bookings]
    }), 200
