# backend/modules/templates/__init__.py

"""
Export templates: per-user report layouts plus read-only system defaults.
"""
