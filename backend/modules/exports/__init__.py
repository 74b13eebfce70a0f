# backend/modules/exports/__init__.py

"""
Dashboard exports: revenue master records written to JSON, CSV, Excel or
PDF files, tracked in ``export_history`` and downloadable for a limited
retention window.
"""
