# ============================================================================
# FILE: tests/unit/test_field_parser.py
# ============================================================================
"""
Unit tests for rule-based receipt field parsing
"""

from datetime import date

import pytest

from src.receipt_ingestion.extractors.field_parser import (
    clean_description,
    deduplicate_items,
    extract_amounts,
    extract_date,
    extract_line_items,
    extract_vendor,
    parse_receipt_text,
)
from src.receipt_ingestion.models.receipt import UNKNOWN_VENDOR, LineItem

TODAY = date(2024, 3, 20)


def test_parse_clear_receipt(clear_receipt_text):
    guess = parse_receipt_text(clear_receipt_text, today=TODAY)

    assert guess.vendor == "WHOLE FOODS MARKET"
    assert guess.date == "2024-03-14"
    assert guess.total == 22.66
    assert guess.subtotal == 20.98
    assert guess.tax == 1.68
    assert [item.description for item in guess.line_items] == [
        "Organic Bananas",
        "Coffee Beans",
        "Notebook Paper",
    ]
    assert [item.category for item in guess.line_items] == [
        "Other",
        "Meals & Entertainment",
        "Office Supplies",
    ]


def test_parse_empty_text():
    guess = parse_receipt_text("", today=TODAY)

    assert guess.vendor == UNKNOWN_VENDOR
    assert guess.date == "2024-03-20"
    assert guess.total == 0.0
    assert guess.line_items == []


class TestVendor:

    @pytest.mark.parametrize("line, expected", [
        ("THE HOME DEPOT #4521", "The Home Depot"),
        ("WAL-MART SUPERCENTER", "Walmart"),
        ("LOWES HOME IMPROVEMENT", "Lowe's"),
        ("Costco Wholesale", "Costco"),
    ])
    def test_known_chains(self, line, expected):
        assert extract_vendor([line, "TOTAL 10.00"]) == expected

    def test_skips_numbers_and_dates(self):
        assert extract_vendor(["0042", "03/14/2024", "Blue Bottle Cafe"]) == "Blue Bottle Cafe"

    def test_only_first_five_lines(self):
        lines = ["12", "34", "56", "78", "90", "Late Vendor Name"]
        assert extract_vendor(lines) == UNKNOWN_VENDOR


class TestDate:

    @pytest.mark.parametrize("line, expected", [
        ("Date: 03/14/2024 12:45", "2024-03-14"),
        ("2024-03-14 08:00", "2024-03-14"),
        ("3-5-24", "2024-03-05"),
        ("Mar 14, 2024", "2024-03-14"),
        ("September 2 2023", "2023-09-02"),
    ])
    def test_formats(self, line, expected):
        assert extract_date(["STORE", line], today=TODAY) == expected

    def test_falls_back_to_today(self):
        assert extract_date(["STORE", "TOTAL 5.00"], today=TODAY) == "2024-03-20"


class TestAmounts:

    def test_keyword_scoring(self):
        lines = ["STORE", "Widget 8.00", "SUBTOTAL 20.98", "TAX 1.68", "TOTAL 22.66", "VISA 22.66", "CHANGE 0.00"]
        assert extract_amounts(lines) == (22.66, 20.98, 1.68)

    def test_sub_total_is_not_a_total(self):
        total, subtotal, tax = extract_amounts(["SUB TOTAL 20.00", "TOTAL 21.60"])

        assert total == 21.60
        assert subtotal == 20.00
        assert tax == 1.60

    def test_subtotal_back_filled(self):
        assert extract_amounts(["Widget 8.00", "TOTAL 10.80", "TAX 0.80"]) == (10.80, 10.00, 0.80)

    def test_largest_amount_when_no_total_keyword(self):
        total, _, _ = extract_amounts(["Lunch special 12.50", "Side salad 4.00", "Cash 20.00"])
        assert total == 12.50

    def test_thousands_separator(self):
        total, _, _ = extract_amounts(["TOTAL $1,234.56"])
        assert total == 1234.56

    def test_no_amounts(self):
        assert extract_amounts(["THANK YOU"]) == (0.0, 0.0, 0.0)


class TestLineItems:

    def test_quantity_at_unit_price(self):
        items = extract_line_items(["Printer Paper 2 @ 4.99 9.98"])

        assert len(items) == 1
        assert items[0].description == "Printer Paper"
        assert items[0].quantity == 2
        assert items[0].unit_price == 4.99
        assert items[0].total_price == 9.98
        assert items[0].category == "Office Supplies"

    def test_quantity_times_unit_equals_total(self):
        items = extract_line_items(["Fuel Premium 2 x 30.00 = 60.00"])

        assert items[0].quantity == 2
        assert items[0].total_price == 60.00
        assert items[0].category == "Travel & Transportation"

    def test_parenthetical_price(self):
        items = extract_line_items(["Latte ($4.75)"])
        assert items[0].description == "Latte"
        assert items[0].total_price == 4.75

    def test_summary_and_payment_lines_are_skipped(self):
        lines = ["SUBTOTAL 20.98", "TAX 1.68", "TOTAL 22.66", "VISA 22.66", "03/14/2024 12:45"]
        assert extract_line_items(lines) == []

    def test_items_have_unique_ids(self):
        items = extract_line_items(["Bananas 1.99", "Coffee Beans 12.99"])
        assert items[0].id != items[1].id


class TestDeduplication:

    def test_near_duplicates_collapse(self):
        items = [LineItem.create("Organic Bananas", 3.49), LineItem.create("Organic Banana", 3.49)]
        result = deduplicate_items(items)

        assert len(result) == 1
        assert result[0].description == "Organic Bananas"

    def test_longer_description_replaces_in_place(self):
        items = [
            LineItem.create("Organic Banana", 3.49),
            LineItem.create("Coffee Beans", 12.99),
            LineItem.create("Organic Bananas", 3.49),
        ]
        result = deduplicate_items(items)

        assert [item.description for item in result] == ["Organic Bananas", "Coffee Beans"]

    def test_distinct_items_kept(self):
        items = [LineItem.create("Milk", 3.49), LineItem.create("Bread", 2.99)]
        assert len(deduplicate_items(items)) == 2


def test_clean_description():
    assert clean_description("1. Copy Paper 1234567890") == "Copy Paper"
    assert clean_description("* Stapler") == "Stapler"
