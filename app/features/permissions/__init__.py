"""
Permission feature module.

Implements organization-scoped Role-Based Access Control: a fixed
role-to-permission table, per-organization role assignments, and the
authorization engine used by the task and audit routes.
"""
