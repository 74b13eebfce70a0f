# backend/modules/templates/constants.py

"""
Built-in export template definitions and template limits.
"""

TEMPLATE_TYPES = [
    "revenue_analysis",
    "commission_analysis",
    "comprehensive",
    "custom",
    "executive",
    "operational",
]

SUPPORTED_FORMATS = ["pdf", "excel", "csv", "json"]

PAGE_ORIENTATIONS = ["portrait", "landscape"]

TEMPLATE_EXPORT_FORMATS = ["json"]
TEMPLATE_EXPORT_VERSION = "1.0"

_STANDARD_FORMATTING = {
    "headerStyle": {"fontSize": 16, "bold": True, "color": "#2E86AB"},
    "subheaderStyle": {"fontSize": 14, "bold": True, "color": "#A23B72"},
    "bodyStyle": {"fontSize": 12, "color": "#333333"},
    "highlightStyle": {"fontSize": 12, "bold": True, "color": "#F18F01"},
}

_PORTRAIT_LAYOUT = {
    "pageOrientation": "portrait",
    "margins": {"top": 20, "right": 20, "bottom": 20, "left": 20},
    "spacing": {"section": 15, "paragraph": 8, "line": 4},
}

DEFAULT_TEMPLATES = {
    "revenue_analysis": {
        "name": "Revenue Analysis",
        "description": "Standard revenue analysis report with KPIs and breakdowns",
        "type": "revenue_analysis",
        "sections": ["kpis", "revenue_breakdown", "company_performance", "payment_methods", "trends"],
        "charts": ["pie_chart", "bar_chart", "line_chart"],
        "formatting": _STANDARD_FORMATTING,
        "layout": _PORTRAIT_LAYOUT,
    },
    "commission_analysis": {
        "name": "Commission Analysis",
        "description": "Detailed commission analysis with financial waterfall",
        "type": "commission_analysis",
        "sections": ["kpis", "financial_waterfall", "employee_commissions", "referral_commissions", "trends"],
        "charts": ["waterfall_chart", "pie_chart", "line_chart"],
        "formatting": _STANDARD_FORMATTING,
        "layout": _PORTRAIT_LAYOUT,
    },
    "comprehensive": {
        "name": "Comprehensive Dashboard",
        "description": "Complete dashboard report with all sections and charts",
        "type": "comprehensive",
        "sections": [
            "kpis",
            "revenue_breakdown",
            "financial_waterfall",
            "company_performance",
            "commissions",
            "trends",
        ],
        "charts": ["all"],
        "formatting": _STANDARD_FORMATTING,
        "layout": {
            "pageOrientation": "landscape",
            "margins": {"top": 15, "right": 15, "bottom": 15, "left": 15},
            "spacing": {"section": 12, "paragraph": 6, "line": 3},
        },
    },
}
