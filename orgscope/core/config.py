"""
Authorization configuration.

Default approval limits per role archetype, hierarchy bounds and the
department path separator. Per-company `max_hierarchy_depth` lives in
companies.settings and overrides MAX_HIERARCHY_DEPTH.
"""

import os
from dataclasses import dataclass
from decimal import Decimal


@dataclass
class AuthorizationConfig:
    """Authorization engine settings."""

    # Default approval limits (company currency units)
    ADMIN_APPROVAL_LIMIT: Decimal = Decimal('999999999')
    MANAGER_APPROVAL_LIMIT: Decimal = Decimal('500000')
    LEAD_APPROVAL_LIMIT: Decimal = Decimal('50000')
    MEMBER_APPROVAL_LIMIT: Decimal = Decimal('0')

    # Hierarchy
    MAX_HIERARCHY_DEPTH: int = 5          # levels, root is level 1
    PATH_SEPARATOR: str = ' > '

    def __post_init__(self):
        limits = [self.MEMBER_APPROVAL_LIMIT, self.LEAD_APPROVAL_LIMIT,
                  self.MANAGER_APPROVAL_LIMIT, self.ADMIN_APPROVAL_LIMIT]
        if any(limit < 0 for limit in limits):
            raise ValueError('Approval limits must be non-negative')
        if limits != sorted(limits):
            raise ValueError('Approval limits must satisfy member <= lead <= manager <= admin')
        if self.MAX_HIERARCHY_DEPTH < 1:
            raise ValueError('MAX_HIERARCHY_DEPTH must be at least 1')

    @classmethod
    def from_env(cls) -> 'AuthorizationConfig':
        """Load configuration from environment variables."""
        return cls(
            ADMIN_APPROVAL_LIMIT=Decimal(os.environ.get(
                'ORGSCOPE_ADMIN_APPROVAL_LIMIT', '999999999'
            )),
            MANAGER_APPROVAL_LIMIT=Decimal(os.environ.get(
                'ORGSCOPE_MANAGER_APPROVAL_LIMIT', '500000'
            )),
            LEAD_APPROVAL_LIMIT=Decimal(os.environ.get(
                'ORGSCOPE_LEAD_APPROVAL_LIMIT', '50000'
            )),
            MEMBER_APPROVAL_LIMIT=Decimal(os.environ.get(
                'ORGSCOPE_MEMBER_APPROVAL_LIMIT', '0'
            )),
            MAX_HIERARCHY_DEPTH=int(os.environ.get(
                'ORGSCOPE_MAX_HIERARCHY_DEPTH', '5'
            )),
        )


_config: AuthorizationConfig | None = None


def get_config() -> AuthorizationConfig:
    """Process-wide configuration, loaded from the environment on first use."""
    global _config
    if _config is None:
        _config = AuthorizationConfig.from_env()
    return _config
