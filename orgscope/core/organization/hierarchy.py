"""Department closure planning.

Pure functions that compute what the department_hierarchy closure table
and the departments' level/path columns must contain after a create,
rename or reparent. HierarchyRepository applies the plan inside a
locked transaction; nothing here touches the database.

Closure rows are (ancestor_id, descendant_id, depth) tuples. Every
department has its self row at depth 0, and for a department D under
parent P the rows are the self row plus every (A, P, d) of P re-emitted
as (A, D, d + 1). P's own self row yields (P, D, 1).
"""

from dataclasses import dataclass, field

from core.config import get_config


@dataclass
class NodeUpdate:
    """New level/path for one department of a rebuilt subtree."""
    department_id: str
    level: int
    path: str


@dataclass
class SubtreePlan:
    """Everything a rebuild writes: node columns and closure rows."""
    nodes: list[NodeUpdate] = field(default_factory=list)
    closure: list[tuple] = field(default_factory=list)

    @property
    def max_level(self) -> int:
        return max((n.level for n in self.nodes), default=0)


def closure_rows(department_id, parent_ancestry) -> list[tuple]:
    """Closure rows for one department.

    Args:
        department_id: the department being indexed
        parent_ancestry: (ancestor_id, depth) pairs whose descendant is the
            parent, including the parent's own (parent_id, 0). Empty for a root.
    """
    rows = [(department_id, department_id, 0)]
    for ancestor_id, depth in parent_ancestry:
        if ancestor_id == department_id:
            continue
        rows.append((ancestor_id, department_id, depth + 1))
    return rows


def level_and_path(name: str, parent: dict | None, separator: str = None) -> tuple[int, str]:
    """Level and display path for a department placed under `parent`.

    `parent` needs 'level' and 'path'; None means the department is a root.
    """
    separator = separator or get_config().PATH_SEPARATOR
    if parent is None:
        return 1, name
    return parent['level'] + 1, f"{parent['path']}{separator}{name}"


def would_create_cycle(department_id, new_parent_id, subtree_ids) -> bool:
    """True if `new_parent_id` is the department itself or one of its descendants.

    `subtree_ids` is descendants_of(department_id) read from the closure,
    which includes the department itself.
    """
    if new_parent_id is None:
        return False
    return new_parent_id == department_id or new_parent_id in set(subtree_ids)


def plan_subtree_rebuild(root_id, departments: dict, parent: dict | None,
                         parent_ancestry, separator: str = None) -> SubtreePlan:
    """Recompute level, path and closure for `root_id` and all its descendants.

    Args:
        root_id: department whose parent (or name) changed
        departments: {id: {'name', 'parent_department_id'}} for every
            department in the subtree. The root's entry may still carry its
            old parent; only the children links below it are followed.
        parent: new parent as {'id', 'level', 'path'}, or None for a root
        parent_ancestry: (ancestor_id, depth) pairs of the new parent

    The walk goes root first, then each direct child using the rows just
    computed for its parent, so nothing from the old ancestry survives.
    """
    children: dict = {}
    for dept_id, dept in departments.items():
        if dept_id == root_id:
            continue
        children.setdefault(dept['parent_department_id'], []).append(dept_id)
    for child_ids in children.values():
        child_ids.sort(key=lambda d: departments[d]['name'])

    plan = SubtreePlan()
    ancestry = [(a, d) for a, d in parent_ancestry]
    stack = [(root_id, parent, ancestry)]
    seen = set()
    while stack:
        dept_id, dept_parent, dept_parent_ancestry = stack.pop()
        if dept_id in seen:
            raise ValueError(f"Department {dept_id} appears twice in its own subtree")
        seen.add(dept_id)

        level, path = level_and_path(departments[dept_id]['name'], dept_parent, separator)
        plan.nodes.append(NodeUpdate(dept_id, level, path))
        rows = closure_rows(dept_id, dept_parent_ancestry)
        plan.closure.extend(rows)

        own_ancestry = [(a, depth) for a, _, depth in rows]
        node = {'id': dept_id, 'level': level, 'path': path}
        for child_id in reversed(children.get(dept_id, [])):
            stack.append((child_id, node, own_ancestry))
    return plan
