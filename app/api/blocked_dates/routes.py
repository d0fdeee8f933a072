"""
Blocked Date Routes
Landlord-managed windows during which a property cannot be booked
"""

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from app.services.availability_service import AvailabilityService
from app.utils.auth import get_current_user
from app.utils.dates import parse_date

blocked_dates_bp = Blueprint('blocked_dates', __name__)


@blocked_dates_bp.route('/<int:property_id>/blocked-dates', methods=['GET'])
def get_blocked_dates(property_id):
    """List blocked windows, optionally only those touching ?start_date&end_date"""
    start = request.args.get('start_date')
    end = request.args.get('end_date')
    start = parse_date(start, 'start_date') if start else None
    end = parse_date(end, 'end_date') if end else None

    blocks = AvailabilityService.list_blocked_dates(property_id, start, end)
    return jsonify({
        'count': len(blocks),
        'blocked_dates': [block.to_dict() for block in blocks]
    }), 200


@blocked_dates_bp.route('/<int:property_id>/blocked-dates/<int:block_id>', methods=['GET'])
def get_blocked_date(property_id, block_id):
    block = AvailabilityService._get_block(property_id, block_id)
    return jsonify({'blocked_date': block.to_dict()}), 200


@blocked_dates_bp.route('/<int:property_id>/blocked-dates', methods=['POST'])
@jwt_required()
def block_dates(property_id):
    """Block a date range for a property"""
    user = get_current_user()
    data = request.get_json(silent=True) or {}

    block = AvailabilityService.create_blocked_date(
        property_id,
        user,
        parse_date(data.get('start_date'), 'start_date'),
        parse_date(data.get('end_date'), 'end_date'),
        reason=data.get('reason'),
    )

    return jsonify({
        'message': 'Dates blocked successfully',
        'blocked_date': block.to_dict()
    }), 201


@blocked_dates_bp.route('/<int:property_id>/blocked-dates/<int:block_id>', methods=['PUT'])
@jwt_required()
def update_blocked_date(property_id, block_id):
    user = get_current_user()
    data = request.get_json(silent=True) or {}

    block = AvailabilityService.update_blocked_date(
        property_id,
        block_id,
        user,
        start=parse_date(data['start_date'], 'start_date') if data.get('start_date') else None,
        end=parse_date(data['end_date'], 'end_date') if data.get('end_date') else None,
        reason=data.get('reason'),
    )

    return jsonify({
        'message': 'Blocked date updated successfully',
        'blocked_date': block.to_dict()
    }), 200


@blocked_dates_bp.route('/<int:property_id>/blocked-dates/<int:block_id>', methods=['DELETE'])
@jwt_required()
def unblock_dates(property_id, block_id):
    """Remove a blocked window"""
    user = get_current_user()
    AvailabilityService.delete_blocked_date(property_id, block_id, user)
    return jsonify({'message': 'Blocked date removed successfully'}), 200
