"""API routes for listing approval routing."""

import logging
from flask import g, jsonify, request
from flask_login import current_user

from . import approvals_bp
from .repositories import ListingRepository
from core.roles.models import Action, TargetType
from core.utils.api_helpers import (
    error_response, get_authorization_service, get_json_or_error,
    permission_required, safe_error_response, with_permission_context,
)

logger = logging.getLogger('orgscope.core.approvals.routes')

_listing_repo = ListingRepository()


def _own_listing(listing_id):
    listing = _listing_repo.get(listing_id)
    if not listing or listing['company_id'] != current_user.company_id:
        return None
    return listing


@approvals_bp.route('/api/listings/<listing_id>/approver', methods=['GET'])
@with_permission_context
def api_find_approver(listing_id):
    """Who would approve this listing (optionally for a different amount)."""
    if not _own_listing(listing_id):
        return error_response('Listing not found', 404)
    if not get_authorization_service().is_in_scope(
            g.permission_context, TargetType.LISTING, listing_id):
        return error_response('Permission denied', 403)
    try:
        approver_id = get_authorization_service().find_approver(
            listing_id, request.args.get('amount'))
        return jsonify({'listing_id': listing_id, 'approver_user_id': approver_id})
    except Exception as e:
        return safe_error_response(e)


@approvals_bp.route('/api/listings/<listing_id>/submit', methods=['POST'])
@with_permission_context
def api_submit_listing(listing_id):
    """Route a listing to its approver and mark it pending approval."""
    if not _own_listing(listing_id):
        return error_response('Listing not found', 404)
    if not get_authorization_service().is_in_scope(
            g.permission_context, TargetType.LISTING, listing_id):
        return error_response('Permission denied', 403)
    try:
        listing = get_authorization_service().submit_for_approval(listing_id)
        return jsonify({'success': True, 'listing': listing})
    except Exception as e:
        return safe_error_response(e)


@approvals_bp.route('/api/listings/<listing_id>/authorize', methods=['POST'])
@permission_required(Action.APPROVE_LISTING.value, TargetType.LISTING, 'listing_id', amount_arg='amount')
def api_check_approval(listing_id):
    """Whether the caller may approve this listing for the given amount."""
    data, error = get_json_or_error()
    if error:
        return error
    logger.info(f'User {current_user.id} may approve listing {listing_id} for {data.get("amount")}')
    return jsonify({'success': True, 'authorized': True})
