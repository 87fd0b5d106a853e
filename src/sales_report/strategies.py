"""Pluggable revenue and bonus calculations.

The report core never hard-codes how a line item turns into revenue or how a
profit rank turns into a bonus. Callers inject two callables through
:class:`sales_report.core_logic.ReportOptions`; this module defines their
contracts and the reference implementations selectable from ``config.ini``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Protocol

from . import data_manager
from .constants import BonusStrategyName, RevenueStrategyName


@dataclass(frozen=True)
class SellerProfile:
    """Roster fields of a seller enriched with the profit used for ranking."""

    id: str
    first_name: str
    last_name: str
    profit: float


class RevenueStrategy(Protocol):
    """Compute the revenue of one line item given its catalog entry."""

    def __call__(self, item: data_manager.LineItem, product: data_manager.Product) -> float:
        ...


class BonusStrategy(Protocol):
    """Return the bonus fraction (0..1) for the seller at ``index`` of ``total``."""

    def __call__(self, index: int, total: int, seller: SellerProfile) -> float:
        ...


def _sale_price(item: data_manager.LineItem, product: data_manager.Product) -> float:
    if item.sale_price is not None:
        return item.sale_price
    if product.sale_price is not None:
        return product.sale_price
    return 0.0


def calculate_simple_revenue(item: data_manager.LineItem, product: data_manager.Product) -> float:
    """Revenue of a line item after its percentage discount.

    The price charged on the receipt wins over the catalog sale price; a line
    with neither contributes no revenue.
    """

    discount_coefficient = 1 - (item.discount / 100)
    return _sale_price(item, product) * item.quantity * discount_coefficient


def calculate_flat_revenue(item: data_manager.LineItem, product: data_manager.Product) -> float:
    """Revenue of a line item at full sale price, ignoring any discount."""

    return _sale_price(item, product) * item.quantity


def calculate_bonus_by_profit(index: int, total: int, seller: SellerProfile) -> float:
    """Tiered bonus fraction by profit rank.

    The first matching tier wins, so with three or fewer sellers the top-3
    tiers take precedence over the last-place tier:

    * rank 0: 15%
    * ranks 1 and 2: 10%
    * last rank: 0%
    * everyone else: 5%
    """

    if index == 0:
        return 0.15
    if index in (1, 2):
        return 0.10
    if index == total - 1:
        return 0.0
    return 0.05


REVENUE_STRATEGIES: Dict[str, RevenueStrategy] = {
    RevenueStrategyName.SIMPLE.value: calculate_simple_revenue,
    RevenueStrategyName.FLAT.value: calculate_flat_revenue,
}

BONUS_STRATEGIES: Dict[str, BonusStrategy] = {
    BonusStrategyName.PROFIT_RANK.value: calculate_bonus_by_profit,
}


__all__ = [
    "SellerProfile",
    "RevenueStrategy",
    "BonusStrategy",
    "calculate_simple_revenue",
    "calculate_flat_revenue",
    "calculate_bonus_by_profit",
    "REVENUE_STRATEGIES",
    "BONUS_STRATEGIES",
]
