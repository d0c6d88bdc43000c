"""Role and assignment repositories."""
from .role_repository import RoleRepository
from .assignment_repository import AssignmentRepository

__all__ = ['RoleRepository', 'AssignmentRepository']
