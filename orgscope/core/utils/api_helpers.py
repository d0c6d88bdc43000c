"""Shared API utilities - decorators, error helpers, request validation.

Translates authorization-engine outcomes into JSON responses: context
resolution and permission checks as decorators, engine exceptions as
status codes.
"""
import logging
import uuid
from functools import wraps

from flask import g, jsonify, request
from flask_login import current_user

from core.exceptions import (
    CycleRejectedError, ForbiddenError, IntegrityGapError, NoRoleAssignedError, NotFoundError,
)

logger = logging.getLogger('orgscope.api')

_authorization_service = None


def get_authorization_service():
    """Process-wide AuthorizationService, created on first use."""
    global _authorization_service
    if _authorization_service is None:
        from core.roles.services import AuthorizationService
        _authorization_service = AuthorizationService()
    return _authorization_service


# ============== Identifiers ==============

def normalize_id(value):
    """Canonical lowercase text of a UUID id, as Postgres returns it.

    Values that are not UUIDs pass through unchanged; lookups on them find
    nothing downstream.
    """
    if value is None:
        return None
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        return value


def _normalize_route_ids(kwargs):
    return {k: normalize_id(v) if k.endswith('_id') else v for k, v in kwargs.items()}


# ============== Decorators ==============

def api_login_required(f):
    """Like @login_required but returns JSON 401 instead of redirect."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'success': False, 'error': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated


def with_permission_context(f):
    """Resolve the caller's permission context into g.permission_context.

    Answers 403 when the caller has no role in their company. Route ids
    (view kwargs ending in `_id`) reach the view in canonical UUID form.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'success': False, 'error': 'Authentication required'}), 401
        try:
            g.permission_context = get_authorization_service().resolve_permission_context(
                current_user.id, current_user.company_id)
        except NotFoundError as e:
            return safe_error_response(e)
        return f(*args, **_normalize_route_ids(kwargs))
    return decorated


def permission_required(action, target_type=None, target_arg=None, amount_arg=None):
    """Decorator requiring `action` on the target named by the route.

    Args:
        action: Action (or its value) to authorize
        target_type: TargetType (or value) of the route's target, if any
        target_arg: view kwarg (or JSON body key) holding the target id
        amount_arg: JSON body key holding the listing amount, for approve_listing

    The resolved context is left on g.permission_context for the view.

    Usage:
        @org_bp.route('/api/departments/<department_id>', methods=['PUT'])
        @permission_required('manage_structure', 'department', 'department_id')
        def api_update_department(department_id): ...
    """
    def decorator(f):
        @wraps(f)
        @with_permission_context
        def decorated(*args, **kwargs):
            body = request.get_json(silent=True) or {}
            target_id = None
            if target_arg:
                target_id = normalize_id(kwargs.get(target_arg, body.get(target_arg)))
            amount = body.get(amount_arg) if amount_arg else None

            context = g.permission_context
            try:
                allowed = get_authorization_service().authorize(
                    context, action, target_type if target_id is not None else None,
                    target_id, amount)
            except ValueError as e:
                return safe_error_response(e)
            if not allowed:
                logger.warning(
                    f'Permission denied: user {context.user_id} action={action} '
                    f'target={target_type}:{target_id}'
                )
                return jsonify({'success': False, 'error': 'Permission denied'}), 403
            return f(*args, **kwargs)
        return decorated
    return decorator


# ============== Request Validation ==============

def get_json_or_error():
    """Get JSON from request body with null check.

    Returns (data, error_response) tuple. Caller pattern:
        data, error = get_json_or_error()
        if error:
            return error
    """
    data = request.get_json(silent=True)
    if data is None:
        return None, error_response('Invalid or missing JSON body')
    return data, None


# ============== Error Handling ==============

def error_response(message, status_code=400, **extra):
    return jsonify({'success': False, 'error': message, **extra}), status_code


def safe_error_response(e, status_code=500):
    """Map an exception to a JSON error without leaking DB internals.

    - NoRoleAssignedError: 403 (no authorization decision possible)
    - NotFoundError: 404
    - ForbiddenError: 403 with the violated rule
    - CycleRejectedError / IntegrityGapError: 409
    - ValueError/KeyError: 400 (business validation, safe to expose)
    - Everything else: logs full exception, returns generic message
    """
    if isinstance(e, NoRoleAssignedError):
        return error_response(str(e), 403)
    if isinstance(e, NotFoundError):
        return error_response(str(e), 404, entity=e.entity)
    if isinstance(e, ForbiddenError):
        return error_response(str(e), 403, rule=e.rule)
    if isinstance(e, CycleRejectedError):
        return error_response(str(e), 409)
    if isinstance(e, IntegrityGapError):
        return error_response(str(e), 409, listing_id=e.listing_id)
    if isinstance(e, (ValueError, KeyError)):
        return error_response(str(e), 400)

    logger.exception('Unhandled error in API route')
    return error_response('An internal error occurred', status_code)
