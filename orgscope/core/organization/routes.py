"""Organization module API routes.

Departments, teams and team membership. Every mutation is authorized
against the caller's permission context before it reaches the repositories.
"""
from flask import g, jsonify, request
from flask_login import current_user

from . import org_bp
from .repositories import DepartmentRepository, OrganizationRepository, TeamRepository
from .repositories.department_repository import UNSET
from core.roles.models import Action, TargetType
from core.utils.api_helpers import (
    error_response, get_authorization_service, get_json_or_error, normalize_id,
    permission_required, safe_error_response, with_permission_context,
)

_org_repo = OrganizationRepository()
_department_repo = DepartmentRepository()
_team_repo = TeamRepository()

_MANAGE = Action.MANAGE_STRUCTURE.value


def _allowed(target_type, target_id) -> bool:
    return get_authorization_service().authorize(
        g.permission_context, _MANAGE, target_type, normalize_id(target_id))


def _denied():
    return error_response('Permission denied', 403)


# ============== DEPARTMENTS ==============

@org_bp.route('/api/departments', methods=['GET'])
@with_permission_context
def api_get_departments():
    """Departments visible to the caller, ordered by path."""
    visible = get_authorization_service().visible_department_ids(g.permission_context)
    return jsonify(_org_repo.list_departments(current_user.company_id, visible))


@org_bp.route('/api/departments/<department_id>', methods=['GET'])
@with_permission_context
def api_get_department(department_id):
    if not get_authorization_service().is_in_scope(
            g.permission_context, TargetType.DEPARTMENT, department_id):
        return _denied()
    department = _org_repo.get_department(department_id, current_user.company_id)
    if not department:
        return error_response('Department not found', 404)
    return jsonify(department)


@org_bp.route('/api/departments', methods=['POST'])
@permission_required(_MANAGE)
def api_create_department():
    """Create a department (optionally from teams, under a parent)."""
    data, error = get_json_or_error()
    if error:
        return error
    parent_id = data.get('parent_department_id')
    if parent_id:
        if not _allowed(TargetType.DEPARTMENT, parent_id):
            return _denied()
    elif not g.permission_context.is_company_wide:
        return _denied()
    team_ids = data.get('team_ids') or []
    if any(not _allowed(TargetType.TEAM, t) for t in team_ids):
        return _denied()

    try:
        department = _department_repo.create(
            current_user.company_id, data.get('name'),
            parent_id=parent_id, manager_id=data.get('manager_id'),
            team_ids=team_ids, description=data.get('description'),
        )
        return jsonify({'success': True, 'department': department}), 201
    except Exception as e:
        return safe_error_response(e)


@org_bp.route('/api/departments/from-teams', methods=['POST'])
@permission_required(_MANAGE)
def api_create_department_from_teams():
    data, error = get_json_or_error()
    if error:
        return error
    team_ids = data.get('team_ids') or []
    parent_id = data.get('parent_department_id')
    if parent_id and not _allowed(TargetType.DEPARTMENT, parent_id):
        return _denied()
    if not parent_id and not g.permission_context.is_company_wide:
        return _denied()
    if any(not _allowed(TargetType.TEAM, t) for t in team_ids):
        return _denied()

    try:
        department = _department_repo.create_from_teams(
            current_user.company_id, data.get('name'), team_ids,
            parent_id=parent_id, manager_id=data.get('manager_id'),
            description=data.get('description'),
        )
        return jsonify({'success': True, 'department': department}), 201
    except Exception as e:
        return safe_error_response(e)


@org_bp.route('/api/departments/group', methods=['POST'])
@permission_required(_MANAGE)
def api_group_departments():
    """Group existing departments under a new root. Company-wide authority only."""
    if not g.permission_context.is_company_wide:
        return _denied()
    data, error = get_json_or_error()
    if error:
        return error
    try:
        group = _department_repo.group(
            current_user.company_id, data.get('name'), data.get('department_ids') or [],
            manager_id=data.get('manager_id'), description=data.get('description'),
        )
        return jsonify({'success': True, 'department': group}), 201
    except Exception as e:
        return safe_error_response(e)


@org_bp.route('/api/departments/<department_id>', methods=['PUT'])
@permission_required(_MANAGE, TargetType.DEPARTMENT, 'department_id')
def api_update_department(department_id):
    """Rename, reparent, change manager or description."""
    data, error = get_json_or_error()
    if error:
        return error
    parent_id = data['parent_department_id'] if 'parent_department_id' in data else UNSET
    if parent_id is not UNSET:
        if parent_id is None and not g.permission_context.is_company_wide:
            return _denied()
        if parent_id is not None and not _allowed(TargetType.DEPARTMENT, parent_id):
            return _denied()
    try:
        department = _department_repo.update(
            department_id, current_user.company_id,
            name=data.get('name'), description=data.get('description'),
            parent_id=parent_id,
            manager_id=data['manager_id'] if 'manager_id' in data else UNSET,
        )
        return jsonify({'success': True, 'department': department})
    except Exception as e:
        return safe_error_response(e)


@org_bp.route('/api/departments/<department_id>', methods=['DELETE'])
@permission_required(_MANAGE, TargetType.DEPARTMENT, 'department_id')
def api_delete_department(department_id):
    try:
        _department_repo.delete(department_id, current_user.company_id)
        return jsonify({'success': True})
    except Exception as e:
        return safe_error_response(e)


@org_bp.route('/api/departments/<department_id>/teams/<team_id>', methods=['PUT'])
@permission_required(_MANAGE, TargetType.DEPARTMENT, 'department_id')
def api_move_team_to_department(department_id, team_id):
    """Link a team to this department (replacing its previous link)."""
    if not _allowed(TargetType.TEAM, team_id):
        return _denied()
    try:
        _department_repo.move_team(team_id, department_id, current_user.company_id)
        return jsonify({'success': True})
    except Exception as e:
        return safe_error_response(e)


@org_bp.route('/api/teams/<team_id>/department', methods=['DELETE'])
@permission_required(_MANAGE, TargetType.TEAM, 'team_id')
def api_remove_team_from_department(team_id):
    try:
        removed = _department_repo.remove_team(team_id, current_user.company_id)
        return jsonify({'success': True, 'removed': removed})
    except Exception as e:
        return safe_error_response(e)


# ============== TEAMS ==============

@org_bp.route('/api/teams', methods=['GET'])
@with_permission_context
def api_get_teams():
    service = get_authorization_service()
    teams = _org_repo.list_teams(current_user.company_id)
    if not g.permission_context.is_company_wide:
        teams = [t for t in teams
                 if service.is_in_scope(g.permission_context, TargetType.TEAM, t['id'])]
    return jsonify(teams)


@org_bp.route('/api/teams/<team_id>', methods=['GET'])
@with_permission_context
def api_get_team(team_id):
    if not get_authorization_service().is_in_scope(g.permission_context, TargetType.TEAM, team_id):
        return _denied()
    team = _team_repo.get(team_id, current_user.company_id)
    if not team:
        return error_response('Team not found', 404)
    return jsonify(team)


@org_bp.route('/api/teams', methods=['POST'])
@permission_required(_MANAGE)
def api_create_team():
    """Create a team. Non company-wide callers must be able to see every member."""
    data, error = get_json_or_error()
    if error:
        return error
    member_ids = data.get('member_ids') or []
    if not g.permission_context.is_company_wide:
        if any(not _allowed(TargetType.USER, u) for u in member_ids):
            return _denied()
    try:
        team = _team_repo.create(
            current_user.company_id, data.get('name'), member_ids,
            lead_id=data.get('team_lead_id'), location=data.get('location'),
            description=data.get('description'),
        )
        return jsonify({'success': True, 'team': team}), 201
    except Exception as e:
        return safe_error_response(e)


@org_bp.route('/api/teams/<team_id>', methods=['PUT'])
@permission_required(_MANAGE, TargetType.TEAM, 'team_id')
def api_update_team(team_id):
    data, error = get_json_or_error()
    if error:
        return error
    try:
        if data.get('team_lead_id'):
            _team_repo.set_lead(team_id, current_user.company_id, data['team_lead_id'])
        updated = _team_repo.update(
            team_id, current_user.company_id, name=data.get('name'),
            description=data.get('description'), location=data.get('location'),
        )
        return jsonify({'success': True, 'updated': updated})
    except Exception as e:
        return safe_error_response(e)


@org_bp.route('/api/teams/<team_id>/members', methods=['POST'])
@permission_required(_MANAGE, TargetType.TEAM, 'team_id')
def api_add_team_members(team_id):
    data, error = get_json_or_error()
    if error:
        return error
    try:
        added = _team_repo.add_members(team_id, current_user.company_id, data.get('user_ids') or [])
        return jsonify({'success': True, 'added': added})
    except Exception as e:
        return safe_error_response(e)


@org_bp.route('/api/teams/<team_id>/members/<user_id>', methods=['DELETE'])
@permission_required(_MANAGE, TargetType.TEAM, 'team_id')
def api_remove_team_member(team_id, user_id):
    try:
        removed = _team_repo.remove_member(team_id, current_user.company_id, user_id)
        return jsonify({'success': True, 'removed': removed})
    except Exception as e:
        return safe_error_response(e)


@org_bp.route('/api/teams/<team_id>', methods=['DELETE'])
@permission_required(_MANAGE, TargetType.TEAM, 'team_id')
def api_dissolve_team(team_id):
    try:
        _team_repo.dissolve(team_id, current_user.company_id)
        return jsonify({'success': True})
    except Exception as e:
        return safe_error_response(e)


# ============== USERS ==============

@org_bp.route('/api/users', methods=['GET'])
@with_permission_context
def api_get_users():
    """Company users visible to the caller."""
    visible = get_authorization_service().visible_user_ids(g.permission_context)
    return jsonify(_org_repo.list_users(current_user.company_id, visible))
