"""Authentication and RBAC service."""

__version__ = "0.1.0"
