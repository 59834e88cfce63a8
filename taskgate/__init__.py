"""
Taskgate - multi-tenant task API with role-based access control and audit logging.
"""

__version__ = "1.0.0"
