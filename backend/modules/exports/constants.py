# backend/modules/exports/constants.py

EXPORT_FORMATS = ["pdf", "excel", "csv", "json"]

FILE_EXTENSIONS = {
    "json": "json",
    "csv": "csv",
    "excel": "xlsx",
    "pdf": "pdf",
}

MEDIA_TYPES = {
    "json": "application/json",
    "csv": "text/csv",
    "excel": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "pdf": "application/pdf",
}

FILE_PREFIX = "revenue-dashboard"
CUSTOM_TEMPLATE = "custom"

EXPORT_TEMPLATES = {
    "revenue_analysis": {
        "title": "Revenue Analysis Report",
        "sections": ["kpis", "revenue_breakdown", "company_performance", "payment_methods", "trends"],
        "charts": ["pie_chart", "bar_chart", "line_chart"],
    },
    "commission_analysis": {
        "title": "Commission Analysis Report",
        "sections": ["kpis", "financial_waterfall", "employee_commissions", "referral_commissions", "trends"],
        "charts": ["waterfall_chart", "pie_chart", "line_chart"],
    },
    "comprehensive": {
        "title": "Comprehensive Dashboard Report",
        "sections": [
            "kpis",
            "revenue_breakdown",
            "financial_waterfall",
            "company_performance",
            "commissions",
            "trends",
        ],
        "charts": ["all"],
    },
}

# Columns shown in the PDF data table; the full record does not fit a page
PDF_COLUMNS = [
    ("dt_id", "ID"),
    ("created_at", "Created"),
    ("company", "Company"),
    ("employee_name", "Employee"),
    ("payment_method_description", "Payment Method"),
    ("amount", "Amount"),
    ("gross_revenue", "Gross Revenue"),
    ("total_vendor_cost", "Vendor Cost"),
    ("employee_commission", "Commission"),
    ("final_net_profit", "Net Profit"),
]

KPI_LABELS = [
    ("total_revenue", "Total Revenue"),
    ("total_transactions", "Total Transactions"),
    ("average_transaction_amount", "Average Transaction"),
    ("payee_fee_revenue", "Payee Fee Revenue"),
    ("payor_fee_revenue", "Payor Fee Revenue"),
    ("total_costs", "Total Costs"),
    ("gross_profit", "Gross Profit"),
    ("total_commissions", "Total Commissions"),
    ("net_profit", "Net Profit"),
    ("profit_margin", "Profit Margin (%)"),
]
