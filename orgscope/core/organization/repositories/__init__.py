"""Organization graph, hierarchy and structure repositories."""
from .hierarchy_repository import HierarchyRepository
from .organization_repository import OrganizationRepository
from .department_repository import DepartmentRepository
from .team_repository import TeamRepository

__all__ = [
    'HierarchyRepository', 'OrganizationRepository',
    'DepartmentRepository', 'TeamRepository',
]
