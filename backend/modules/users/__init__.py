# backend/modules/users/__init__.py

"""
Dashboard user accounts.

Admins create and list accounts; every account carries a single role
(``admin`` or ``user``) and a status that gates login.
"""
