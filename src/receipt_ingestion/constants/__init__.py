from .expense_categories import (
    EXPENSE_CATEGORIES,
    ITEM_CATEGORY_RULES,
    VENDOR_CATEGORY_RULES,
)
