"""
Authorization error types.

Business-rule validation (bad input, duplicate names, malformed scopes)
raises plain ValueError, which the API layer maps to 400 like every
other route. The classes here carry the identifiers a caller needs to
explain a denial.
"""


class AuthorizationError(Exception):
    """Base exception for the authorization engine."""
    pass


class NotFoundError(AuthorizationError):
    """Raised when a referenced entity does not exist (or is soft-deleted)."""
    def __init__(self, entity: str, entity_id=None, message: str = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(message or f"{entity} {entity_id} not found")


class NoRoleAssignedError(NotFoundError):
    """Raised when a user has no active role assignment in a company."""
    def __init__(self, user_id, company_id):
        self.user_id = user_id
        self.company_id = company_id
        super().__init__(
            'role_assignment', user_id,
            message=f"User {user_id} has no role in company {company_id}",
        )


class ForbiddenError(AuthorizationError):
    """Raised when an actor is authenticated but not allowed to do something.

    `rule` names the check that failed so callers and logs can tell
    denials apart without parsing the message.
    """
    def __init__(self, rule: str, message: str = None):
        self.rule = rule
        super().__init__(message or f"Forbidden: {rule}")


class CycleRejectedError(AuthorizationError):
    """Raised when a reparent would make a department its own ancestor."""
    def __init__(self, department_id, parent_id):
        self.department_id = department_id
        self.parent_id = parent_id
        super().__init__(
            f"Cannot move department {department_id} under {parent_id}: "
            f"it would become its own ancestor"
        )


class IntegrityGapError(AuthorizationError):
    """Raised when a listing has no eligible approver anywhere in the company."""
    def __init__(self, listing_id, amount):
        self.listing_id = listing_id
        self.amount = amount
        super().__init__(
            f"No approver with a sufficient limit for listing {listing_id} (amount {amount})"
        )
