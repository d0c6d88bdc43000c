"""orgscope core.

Shared infrastructure and the authorization engine:
- Base repository, configuration, error types
- Organization graph and department hierarchy index
- Roles, permission contexts, scope checks, role assignment
- Listing approver escalation
"""
