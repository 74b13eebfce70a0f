# backend/modules/zoho/__init__.py

"""
Zoho Analytics integration.

OAuth refresh-token handling, row operations on workspace views and the
proxy endpoints that expose them.
"""
