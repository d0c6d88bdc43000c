"""Approver escalation search.

Finds who should sign off a listing: the team lead, then department
managers walking up the parent chain, then a company admin. The first
active person whose effective limit covers the amount wins. The walk follows
parent pointers and is bounded by the company's hierarchy depth.
"""

import logging

from . import hooks
from .repositories import ListingRepository
from core.exceptions import IntegrityGapError, NotFoundError
from core.organization.repositories import HierarchyRepository, OrganizationRepository
from core.roles.models import parse_amount
from core.roles.repositories import AssignmentRepository
from core.roles.resolver import PermissionContextResolver
from core.utils.logging_config import log_with_context

logger = logging.getLogger('orgscope.core.approvals.escalation')


class ApproverEscalationSearch:

    def __init__(self, resolver: PermissionContextResolver = None,
                 org_repo: OrganizationRepository = None,
                 hierarchy_repo: HierarchyRepository = None,
                 assignment_repo: AssignmentRepository = None,
                 listing_repo: ListingRepository = None):
        self._assignment_repo = assignment_repo or AssignmentRepository()
        self._resolver = resolver or PermissionContextResolver(self._assignment_repo)
        self._org_repo = org_repo or OrganizationRepository()
        self._hierarchy_repo = hierarchy_repo or HierarchyRepository()
        self._listing_repo = listing_repo or ListingRepository()

    # ════════════════════════════════════════════
    # Public API
    # ════════════════════════════════════════════

    def find_approver(self, listing_id, amount=None):
        """User id of the approver for `listing_id`, or None.

        Args:
            listing_id: listing to route
            amount: amount to cover; defaults to the listing's estimated value

        None means nobody in the company can approve it (not even an admin)
        and must be escalated out of band.
        """
        listing = self._listing_repo.get(listing_id)
        if not listing:
            raise NotFoundError('listing', listing_id)
        amount = parse_amount(amount if amount is not None else listing['estimated_value'] or 0)
        company_id = listing['company_id']

        approver_id, source = self._search(company_id, listing['team_id'], amount)

        if approver_id:
            log_with_context(
                logger, logging.INFO, f'Approver for listing {listing_id}: {approver_id} ({source})',
                company_id=company_id, listing_id=listing_id, amount=str(amount),
            )
            hooks.fire('approval.approver_found', {
                'company_id': company_id, 'listing_id': listing_id,
                'approver_user_id': approver_id, 'source': source, 'amount': str(amount),
            })
        else:
            log_with_context(
                logger, logging.WARNING, f'No eligible approver for listing {listing_id}',
                company_id=company_id, listing_id=listing_id, amount=str(amount),
            )
            hooks.fire('approval.no_eligible_approver', {
                'company_id': company_id, 'listing_id': listing_id, 'amount': str(amount),
            })
        return approver_id

    def submit_for_approval(self, listing_id) -> dict:
        """Route a listing to its approver and mark it pending approval.

        Raises:
            IntegrityGapError: no approver exists for the listing's value
        """
        listing = self._listing_repo.get(listing_id)
        if not listing:
            raise NotFoundError('listing', listing_id)
        amount = listing['estimated_value'] or 0
        approver_id = self.find_approver(listing_id, amount)
        if not approver_id:
            raise IntegrityGapError(listing_id, amount)
        return self._listing_repo.set_pending_approval(listing_id, approver_id)

    # ════════════════════════════════════════════
    # Search
    # ════════════════════════════════════════════

    def _search(self, company_id, team_id, amount):
        """Returns (user_id, source) or (None, None)."""
        if team_id:
            lead_id = self._org_repo.get_team_lead_id(team_id)
            if lead_id and self._covers(lead_id, company_id, amount):
                return lead_id, 'team_lead'

            department_id = self._org_repo.department_of_team(team_id)
            max_depth = self._hierarchy_repo.max_depth(company_id)
            steps = 0
            while department_id and steps < max_depth:
                node = self._hierarchy_repo.get_node(department_id)
                if not node:
                    break
                manager_id = node['manager_user_id']
                if manager_id and self._covers(manager_id, company_id, amount):
                    return manager_id, 'department_manager'
                department_id = node['parent_department_id']
                steps += 1

        # Admins approve regardless of their configured limit
        admin_ids = self._assignment_repo.admin_user_ids(company_id)
        if admin_ids:
            return admin_ids[0], 'company_admin'
        return None, None

    def _covers(self, user_id, company_id, amount) -> bool:
        # Only active company users can approve
        if not self._org_repo.get_company_user(user_id, company_id):
            logger.debug(f'Skipping inactive approver candidate {user_id}')
            return False
        context = self._resolver.try_resolve(user_id, company_id)
        return context is not None and context.max_approval_amount >= amount
