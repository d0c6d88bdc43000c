"""Listing repository - approval routing state of material listings."""

from core.base_repository import BaseRepository
from core.exceptions import NotFoundError
from core.roles.models import ListingStatus

_SUBMITTABLE = (ListingStatus.DRAFT.value, ListingStatus.REJECTED.value)


class ListingRepository(BaseRepository):

    def get(self, listing_id) -> dict | None:
        return self.query_one('''
            SELECT id, company_id, team_id, created_by, title, estimated_value,
                   status, current_approver_user_id, submitted_at
            FROM material_listings
            WHERE id = %s
        ''', (listing_id,))

    def set_pending_approval(self, listing_id, approver_user_id) -> dict:
        """Route a draft (or rejected) listing to `approver_user_id`."""
        def _work(cursor):
            cursor.execute('''
                SELECT status FROM material_listings WHERE id = %s FOR UPDATE
            ''', (listing_id,))
            row = cursor.fetchone()
            if not row:
                raise NotFoundError('listing', listing_id)
            if row['status'] not in _SUBMITTABLE:
                raise ValueError(f"Listing is {row['status']}, only draft or rejected listings can be submitted")
            cursor.execute('''
                UPDATE material_listings
                SET status = %s, current_approver_user_id = %s,
                    submitted_at = NOW(), updated_at = NOW()
                WHERE id = %s
                RETURNING id, company_id, team_id, estimated_value, status,
                          current_approver_user_id, submitted_at
            ''', (ListingStatus.PENDING_APPROVAL.value, approver_user_id, listing_id))
            return dict(cursor.fetchone())
        return self.execute_many(_work)
