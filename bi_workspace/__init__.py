"""
BI Workspace Access Engine.

Permisos efectivos, sharing atómico, RLS y jerarquía de folders/dashboards.
Entry point: `container.get_workspace_facade()`.
"""

__version__ = "0.1.0"
