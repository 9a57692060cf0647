"""
Permission feature module.

Implements the static permission catalog and scope-aware access decisions
(global / school / own) for multi-school RBAC.
"""
