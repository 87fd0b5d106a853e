"""Integration tests walking the workbook through the DAL, the report core, and back.

The sample workbook (see ``conftest.py``) holds three sellers, three products,
and four receipts. One receipt comes from a seller outside the roster and one
line item references an uncatalogued SKU, so both tolerance rules are
exercised alongside the normal aggregation path.
"""

from __future__ import annotations

import openpyxl

from sales_report import constants, core_logic, data_manager


def test_sample_workbook_report(runtime_context):
    """The sample data yields the expected ranked report."""

    results = core_logic.generate_report(runtime_context)

    assert [line.as_dict() for line in results] == [
        {
            "seller_id": "seller_1",
            "name": "Alexey Petrov",
            # R1: 100 - 10, R3: 30 - 0
            "revenue": 120.0,
            # SKU_001: 5 * 20 * 0.9 - 5 * 10 = 40; SKU_003: 3 * 4 - 3 * 2 = 6
            "profit": 46.0,
            "sales_count": 2,
            "top_products": [
                {"sku": "SKU_001", "quantity": 5},
                {"sku": "SKU_003", "quantity": 3},
            ],
            "bonus": 6.9,
        },
        {
            "seller_id": "seller_2",
            "name": "Ivan Smirnov",
            "revenue": 40.0,
            "profit": 15.0,
            "sales_count": 1,
            "top_products": [{"sku": "SKU_002", "quantity": 5}],
            "bonus": 1.5,
        },
        {
            "seller_id": "seller_3",
            "name": "Maria Orlova",
            "revenue": 0.0,
            "profit": 0.0,
            "sales_count": 0,
            "top_products": [],
            "bonus": 0.0,
        },
    ]


def test_flat_revenue_strategy_from_config(config_factory):
    """Switching RevenueStrategy to flat ignores line discounts in profit."""

    bundle = config_factory(revenue_strategy=constants.RevenueStrategyName.FLAT.value)
    context = core_logic.load_runtime_context(bundle.config_path)

    results = core_logic.generate_report(context)

    top = results[0]
    assert top.seller_id == "seller_1"
    # SKU_001 now earns 5 * 20 - 50 = 50, plus 6 from SKU_003
    assert top.profit == 56.0
    assert top.revenue == 120.0
    assert top.bonus == 8.4


def test_export_round_trip(runtime_context, tmp_path):
    """Persisted report rows can be read back in rank order."""

    results = core_logic.generate_report(runtime_context)
    destination = core_logic.persist_report(runtime_context, results, tmp_path / "report.xlsx")

    workbook = openpyxl.load_workbook(destination)
    rows = list(
        workbook[constants.SheetName.SELLER_REPORT.value].iter_rows(min_row=2, values_only=True)
    )
    assert [row[0] for row in rows] == [1, 2, 3]
    assert rows[0][1:7] == ("seller_1", "Alexey Petrov", 120, 46, 2, 6.9)
    assert rows[0][7] == "SKU_001:5, SKU_003:3"
    assert not rows[2][7]

    reloaded = data_manager.open_workbook(destination)
    assert len(list(data_manager.iter_sellers(reloaded))) == 3
