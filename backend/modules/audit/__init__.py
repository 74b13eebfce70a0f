# backend/modules/audit/__init__.py

"""
Audit trail for authentication, user management, reporting and data
changes, readable by admins.
"""
