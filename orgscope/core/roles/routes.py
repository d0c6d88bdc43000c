"""Role and permission routes."""
import logging

from flask import g, jsonify
from flask_login import current_user

from . import roles_bp
from .models import Action, RoleType, parse_amount
from .repositories import AssignmentRepository, RoleRepository
from core.utils.api_helpers import (
    error_response, get_authorization_service, get_json_or_error, normalize_id,
    permission_required, safe_error_response, with_permission_context,
)

logger = logging.getLogger('orgscope.core.roles.routes')

_role_repo = RoleRepository()
_assignment_repo = AssignmentRepository()

_SETTINGS = Action.ACCESS_SETTINGS.value


# ============== CURRENT USER ==============

@roles_bp.route('/api/me/permissions', methods=['GET'])
@with_permission_context
def api_my_permissions():
    """Effective permission context and scope of the caller."""
    context = g.permission_context
    result = context.to_dict()
    result['scope'] = get_authorization_service().describe_scope(context)
    return jsonify(result)


# ============== ROLE MANAGEMENT ==============

@roles_bp.route('/api/roles', methods=['GET'])
@with_permission_context
def api_get_roles():
    return jsonify(_role_repo.get_all(current_user.company_id))


@roles_bp.route('/api/roles/provision', methods=['POST'])
@permission_required(_SETTINGS)
def api_provision_roles():
    """Create the four system roles if the company has none yet."""
    try:
        return jsonify({'success': True, 'roles': _role_repo.provision_system_roles(current_user.company_id)})
    except Exception as e:
        return safe_error_response(e)


@roles_bp.route('/api/roles', methods=['POST'])
@permission_required(_SETTINGS)
def api_create_role():
    """Create a custom role."""
    data, error = get_json_or_error()
    if error:
        return error
    name = (data.get('name') or '').strip()
    if not name:
        return error_response('Name is required')
    try:
        role = _role_repo.save(
            current_user.company_id, name, RoleType(data.get('role_type', 'member')),
            description=data.get('description'),
            can_manage_structure=bool(data.get('can_manage_structure', False)),
            can_approve_listings=bool(data.get('can_approve_listings', False)),
            can_access_settings=bool(data.get('can_access_settings', False)),
            max_approval_amount=parse_amount(data.get('max_approval_amount', 0)),
        )
        return jsonify({'success': True, 'role': role}), 201
    except Exception as e:
        return safe_error_response(e)


@roles_bp.route('/api/roles/<role_id>', methods=['PUT'])
@permission_required(_SETTINGS)
def api_update_role(role_id):
    data, error = get_json_or_error()
    if error:
        return error
    try:
        updated = _role_repo.update(
            role_id, current_user.company_id,
            name=data.get('name'), description=data.get('description'),
            can_manage_structure=data.get('can_manage_structure'),
            can_approve_listings=data.get('can_approve_listings'),
            can_access_settings=data.get('can_access_settings'),
            max_approval_amount=parse_amount(data.get('max_approval_amount')),
        )
        if not updated:
            return error_response('Role not found or nothing to update', 404)
        return jsonify({'success': True})
    except Exception as e:
        return safe_error_response(e)


@roles_bp.route('/api/roles/<role_id>', methods=['DELETE'])
@permission_required(_SETTINGS)
def api_delete_role(role_id):
    try:
        if not _role_repo.delete(role_id, current_user.company_id):
            return error_response('Role not found', 404)
        return jsonify({'success': True})
    except Exception as e:
        return safe_error_response(e)


# ============== ROLE ASSIGNMENT ==============

@roles_bp.route('/api/role-assignments', methods=['GET'])
@permission_required(_SETTINGS)
def api_get_assignments():
    return jsonify(_assignment_repo.get_all(current_user.company_id))


@roles_bp.route('/api/users/<user_id>/role', methods=['PUT'])
@with_permission_context
def api_assign_role(user_id):
    """Replace a user's role. Granter rules decide what the caller may grant."""
    data, error = get_json_or_error()
    if error:
        return error
    if not data.get('role_type'):
        return error_response('role_type is required')
    try:
        assignment = get_authorization_service().assign_role(
            g.permission_context, user_id, data['role_type'],
            scope_type=data.get('scope_type'), scope_id=normalize_id(data.get('scope_id')),
            max_approval_amount_override=data.get('max_approval_amount_override'),
        )
        return jsonify({'success': True, 'assignment': assignment.to_dict()})
    except Exception as e:
        return safe_error_response(e)
