# ============================================================================
# src/receipt_ingestion/constants/expense_categories.py
# ============================================================================
"""
Expense category keyword tables.

Rules are checked in order; the first rule with a matching keyword wins.
A vendor containing "depot" therefore resolves to Office Supplies before
the "home depot" rule is reached.
"""

OFFICE_SUPPLIES = "Office Supplies"
TRAVEL = "Travel & Transportation"
MEALS = "Meals & Entertainment"
EQUIPMENT = "Equipment & Software"
OTHER = "Other"

EXPENSE_CATEGORIES = (OFFICE_SUPPLIES, TRAVEL, MEALS, EQUIPMENT, OTHER)

# (keywords, category) for a single line item description
ITEM_CATEGORY_RULES = (
    (("paper", "pen", "staple"), OFFICE_SUPPLIES),
    (("gas", "fuel", "parking"), TRAVEL),
    (("food", "coffee", "meal"), MEALS),
    (("software", "hardware", "computer"), EQUIPMENT),
)

# (keywords, category) for the vendor name
VENDOR_CATEGORY_RULES = (
    (("gas", "shell", "exxon", "chevron"), TRAVEL),
    (("office", "staples", "depot"), OFFICE_SUPPLIES),
    (("restaurant", "coffee", "starbucks", "mcdonald"), MEALS),
    (("walmart", "target", "marshalls", "tj maxx"), OTHER),
    (("home depot", "lowes", "hardware"), EQUIPMENT),
    (("grocery", "safeway", "kroger"), OTHER),
)
