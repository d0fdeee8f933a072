"""
Caller identity helpers

The JWT only carries the user id. Role and active flag are read from the
database on every request so a demoted or disabled account loses access
immediately.
"""

from functools import wraps

from flask_jwt_extended import get_jwt_identity, jwt_required

from extensions import db
from app.errors import Forbidden, Unauthorized
from app.models.user import User, UserRole


def get_current_user():
    """Load the user behind the current access token"""
    identity = get_jwt_identity()
    try:
        user = db.session.get(User, int(identity))
    except (TypeError, ValueError):
        user = None
    if user is None or not user.is_active:
        raise Unauthorized('Authentication required')
    return user


def roles_required(*roles):
    """Allow the view only for callers holding one of ``roles``"""
    allowed = {UserRole(role) for role in roles}

    def wrapper(fn):
        @wraps(fn)
        @jwt_required()
        def decorator(*args, **kwargs):
            user = get_current_user()
            if user.role not in allowed:
                raise Forbidden('Insufficient permissions')
            return fn(*args, **kwargs)
        return decorator
    return wrapper


def admin_required():
    return roles_required(UserRole.ADMIN)
