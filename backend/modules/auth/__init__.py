# backend/modules/auth/__init__.py

"""
Login, token refresh and logout for dashboard users.
"""
