"""Enumerations and limits shared across the sales report modules.

Keeps sheet names, strategy identifiers, and report limits in one place so
that the data layer, the report core, and the CLI agree on them.
"""

from __future__ import annotations

from enum import Enum


# Workbook layout version expected by the loader.
EXPECTED_SCHEMA_VERSION = "1.0.0"

# Number of best-selling products kept per seller.
TOP_PRODUCTS_LIMIT = 10


class SheetName(str, Enum):
    """Enumerate the workbook sheet names read or written by the DAL."""

    SELLERS = "Sellers"
    PRODUCTS = "Products"
    PURCHASE_RECORDS = "PurchaseRecords"
    PURCHASE_ITEMS = "PurchaseItems"
    SELLER_REPORT = "SellerReport"


class RevenueStrategyName(str, Enum):
    """Enumerate the revenue strategies selectable from ``config.ini``."""

    SIMPLE = "simple"
    FLAT = "flat"


class BonusStrategyName(str, Enum):
    """Enumerate the bonus strategies selectable from ``config.ini``."""

    PROFIT_RANK = "profit-rank"


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "TOP_PRODUCTS_LIMIT",
    "SheetName",
    "RevenueStrategyName",
    "BonusStrategyName",
]
