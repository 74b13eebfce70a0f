# backend/modules/revenue/__init__.py

"""
Revenue and Commission Analytics Module

Builds the revenue master view from disbursement transactions and the
fee, vendor-cost, employee-commission and referral-partner reference
tables, then serves it to the dashboard:

- Services: per-transaction revenue formulas, master view assembly,
  filter validation, KPI and chart aggregation, cache synchronisation
- Routers: dashboard query and revenue analytics endpoints
- Models: source tables, the materialized cache and sync history
"""
