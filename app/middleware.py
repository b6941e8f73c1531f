"""Middleware for request principal and tenant context."""
from functools import wraps
from flask import session, g, current_app
from app.database import get_session
from app.exceptions import UnauthorizedError
from app.models import Tenant

ROLES = ('OWNER', 'ADMIN', 'STAFF')


def load_request_context():
    """
    Load the authenticated principal into g (Flask's per-request global).

    Authentication itself is done upstream; the principal ({user_id,
    tenant_id, role}) arrives in the signed session. Sets g.user_id,
    g.tenant_id and g.user_role. A tenant that no longer exists or is
    inactive is treated as unauthenticated.
    """
    g.user_id = None
    g.tenant_id = None
    g.user_role = None

    user_id = session.get('user_id')
    tenant_id = session.get('tenant_id')
    if not user_id or not tenant_id:
        return

    tenant = get_session().query(Tenant).filter_by(id=tenant_id).first()
    if not tenant or not tenant.active:
        current_app.logger.warning(f"Rejected context for user {user_id}: tenant {tenant_id} unavailable")
        session.pop('tenant_id', None)
        return

    g.user_id = user_id
    g.tenant_id = tenant.id
    g.user_role = session.get('role', 'STAFF')


def require_tenant(f):
    """
    Decorator: Require an authenticated principal with a tenant.

    Raises UnauthorizedError (401) otherwise.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user_id') is None or g.get('tenant_id') is None:
            raise UnauthorizedError('Authentication required', status_code=401)
        return f(*args, **kwargs)
    return decorated_function


def require_role(*allowed_roles):
    """
    Decorator to restrict access to specific roles.

    Usage:
        @require_role('OWNER')
        @require_role('OWNER', 'ADMIN')

    Must be used AFTER require_tenant.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_role = g.get('user_role')
            if not user_role or user_role not in allowed_roles:
                raise UnauthorizedError('You do not have permission to perform this action')
            return f(*args, **kwargs)
        return decorated_function
    return decorator
