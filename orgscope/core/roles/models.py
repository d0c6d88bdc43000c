"""
Role and scope data model.

Role archetypes, scope and target discriminants, and the effective
permission context derived from a user's single role assignment.
"""

from dataclasses import dataclass, field, asdict
from decimal import Decimal
from enum import Enum
from typing import Optional


class RoleType(Enum):
    """Role archetype. Every company has exactly one system role of each."""
    ADMIN = "admin"
    MANAGER = "manager"
    LEAD = "lead"
    MEMBER = "member"


class ScopeType(Enum):
    """Portion of the organization an assignment's authority covers."""
    COMPANY = "company"
    DEPARTMENT = "department"
    TEAM = "team"


class TargetType(Enum):
    """Kind of entity an action is performed on."""
    DEPARTMENT = "department"
    TEAM = "team"
    USER = "user"
    LISTING = "listing"


class Action(Enum):
    """Authorizable action, each gated by one capability flag."""
    MANAGE_STRUCTURE = "manage_structure"
    APPROVE_LISTING = "approve_listing"
    ACCESS_SETTINGS = "access_settings"


class ListingStatus(Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    ARCHIVED = "archived"


ACTION_FLAGS = {
    Action.MANAGE_STRUCTURE: 'can_manage_structure',
    Action.APPROVE_LISTING: 'can_approve_listings',
    Action.ACCESS_SETTINGS: 'can_access_settings',
}


@dataclass(frozen=True)
class SystemRoleTemplate:
    """Definition of an auto-provisioned role; limit comes from config."""
    role_type: RoleType
    name: str
    description: str
    can_manage_structure: bool
    can_approve_listings: bool
    can_access_settings: bool


SYSTEM_ROLES = (
    SystemRoleTemplate(RoleType.ADMIN, 'Company Admin',
                       'Full access to company settings, structure and approvals',
                       True, True, True),
    SystemRoleTemplate(RoleType.MANAGER, 'Manager',
                       'Manages a department subtree and approves its listings',
                       True, True, False),
    SystemRoleTemplate(RoleType.LEAD, 'Team Lead',
                       'Manages a single team and approves small listings',
                       True, True, False),
    SystemRoleTemplate(RoleType.MEMBER, 'Team Member',
                       'Creates listings, no approval authority',
                       False, False, False),
)


@dataclass(frozen=True)
class PermissionContext:
    """Effective authority of one user in one company.

    Derived from the user's role assignment on every request and never
    stored. `max_approval_amount` is the assignment override when set,
    otherwise the role's default limit.
    """
    user_id: str
    company_id: str
    role_id: str
    role_type: RoleType
    can_manage_structure: bool
    can_approve_listings: bool
    can_access_settings: bool
    scope_type: ScopeType
    scope_id: Optional[str] = None
    max_approval_amount: Decimal = field(default_factory=lambda: Decimal("0"))

    @property
    def is_company_wide(self) -> bool:
        # A department assignment without a department is company-wide authority
        return self.scope_type == ScopeType.COMPANY or (
            self.scope_type == ScopeType.DEPARTMENT and self.scope_id is None
        )

    def has_flag(self, action: Action) -> bool:
        return getattr(self, ACTION_FLAGS[action])

    def to_dict(self) -> dict:
        data = asdict(self)
        data['role_type'] = self.role_type.value
        data['scope_type'] = self.scope_type.value
        data['max_approval_amount'] = str(self.max_approval_amount)
        return data


@dataclass
class RoleAssignment:
    """A persisted user_roles row."""
    id: str
    user_id: str
    role_id: str
    scope_type: ScopeType
    scope_id: Optional[str] = None
    max_approval_amount_override: Optional[Decimal] = None
    granted_by: Optional[str] = None
    granted_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> 'RoleAssignment':
        override = row.get('max_approval_amount_override')
        return cls(
            id=row['id'],
            user_id=row['user_id'],
            role_id=row['role_id'],
            scope_type=ScopeType(row['scope_type']),
            scope_id=row.get('scope_id'),
            max_approval_amount_override=Decimal(str(override)) if override is not None else None,
            granted_by=row.get('granted_by'),
            granted_at=row.get('granted_at'),
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'role_id': self.role_id,
            'scope_type': self.scope_type.value,
            'scope_id': self.scope_id,
            'max_approval_amount_override': (
                str(self.max_approval_amount_override)
                if self.max_approval_amount_override is not None else None
            ),
            'granted_by': self.granted_by,
            'granted_at': self.granted_at,
        }


def parse_amount(value) -> Optional[Decimal]:
    """Coerce an amount from JSON/DB into Decimal. None stays None."""
    if value is None:
        return None
    try:
        amount = Decimal(str(value))
    except ArithmeticError:
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"Amount must be a non-negative number, got {value!r}")
    return amount
