from .expense_classifier import categorize_item, categorize_receipt
