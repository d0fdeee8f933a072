"""
Authentication Routes
"""

import re

from flask import Blueprint, request, jsonify
from flask_jwt_extended import create_access_token, create_refresh_token, jwt_required

from extensions import db, limiter
from app.errors import Conflict, Forbidden, Unauthorized, ValidationError
from app.models.user import User, UserRole
from app.utils.auth import get_current_user

auth_bp = Blueprint('auth', __name__)

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')

# Admin accounts are only created with scripts/make_admin.py
SELF_SERVICE_ROLES = (UserRole.USER, UserRole.LANDLORD)


def _tokens(user):
    return {
        'access_token': create_access_token(identity=str(user.id)),
        'refresh_token': create_refresh_token(identity=str(user.id)),
    }


@auth_bp.route('/register', methods=['POST'])
@limiter.limit("5 per hour")
def register():
    """Register a new user"""
    data = request.get_json(silent=True) or {}

    # Validate required fields
    for field in ('email', 'password', 'name'):
        if not data.get(field):
            raise ValidationError(f'{field} is required')

    email = data['email'].strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError('Please add a valid email')
    if len(data['password']) < 6:
        raise ValidationError('Password must be at least 6 characters')

    try:
        role = UserRole(data.get('role', UserRole.USER.value))
    except ValueError:
        raise ValidationError('Invalid role')
    if role not in SELF_SERVICE_ROLES:
        raise Forbidden('Admin accounts cannot be self-registered')

    # Check if user already exists
    if User.query.filter_by(email=email).first():
        raise Conflict('Email already registered')

    user = User(
        email=email,
        password=data['password'],
        name=data['name'].strip(),
        phone=data.get('phone'),
        role=role,
    )
    db.session.add(user)
    db.session.commit()

    return jsonify({
        'message': 'User registered successfully',
        'user': user.to_dict(include_email=True),
        **_tokens(user)
    }), 201


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("50 per hour")
def login():
    """Login user"""
    data = request.get_json(silent=True) or {}

    if not data.get('email') or not data.get('password'):
        raise ValidationError('Email and password are required')

    user = User.query.filter_by(email=data['email'].strip().lower()).first()
    if not user or not user.check_password(data['password']):
        raise Unauthorized('Invalid email or password')
    if not user.is_active:
        raise Forbidden('Account is deactivated')

    user.update_last_login()

    return jsonify({
        'message': 'Login successful',
        'user': user.to_dict(include_email=True),
        **_tokens(user)
    }), 200


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def get_me():
    """Get current user"""
    user = get_current_user()
    return jsonify({'user': user.to_dict(include_email=True)}), 200
