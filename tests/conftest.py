"""Shared pytest fixtures and utilities for sales report tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, Sequence

import openpyxl
import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

for candidate in (SRC_DIR, PROJECT_ROOT):
    candidate_str = str(candidate)
    if candidate_str not in sys.path:
        sys.path.insert(0, candidate_str)

from sales_report import cli, constants, core_logic, data_manager, strategies  # noqa: E402
from setup_excel import create_sales_workbook  # noqa: E402

DEFAULT_SCHEMA_VERSION = constants.EXPECTED_SCHEMA_VERSION
_CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "CompanyName = {company_name}\n"
    "SchemaVersion = {schema_version}\n\n"
    "[Report]\n"
    "RevenueStrategy = {revenue_strategy}\n"
    "{output_line}"
)

SAMPLE_SELLERS = [
    ("seller_1", "Alexey", "Petrov"),
    ("seller_2", "Ivan", "Smirnov"),
    ("seller_3", "Maria", "Orlova"),
]
SAMPLE_PRODUCTS = [
    ("SKU_001", "Coffee", 10, 20),
    ("SKU_002", "Tea", 5, 8),
    ("SKU_003", "Cake", 2, 4),
]
SAMPLE_RECORDS = [
    ("R1", "seller_1", 100, 10),
    ("R2", "seller_2", 40, 0),
    ("R3", "seller_1", 30, 0),
    ("R4", "ghost", 999, 0),
]
SAMPLE_ITEMS = [
    ("R1", "SKU_001", 5, 20, 10),
    ("R2", "SKU_002", 5, 8, 0),
    ("R3", "SKU_003", 3, None, 0),
    ("R3", "SKU_404", 1, 10, 0),
    ("R4", "SKU_001", 1, 20, 0),
]


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    workbook_path: Path
    output_path: Optional[Path]
    schema_version: str
    company_name: str


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


def fill_workbook(
    workbook_path: Path,
    *,
    sellers: Iterable[Sequence[object]] = (),
    products: Iterable[Sequence[object]] = (),
    records: Iterable[Sequence[object]] = (),
    items: Iterable[Sequence[object]] = (),
) -> Path:
    """Append rows to the input sheets of an existing workbook and save it."""

    workbook = openpyxl.load_workbook(workbook_path)
    for sheet_name, rows in (
        (constants.SheetName.SELLERS.value, sellers),
        (constants.SheetName.PRODUCTS.value, products),
        (constants.SheetName.PURCHASE_RECORDS.value, records),
        (constants.SheetName.PURCHASE_ITEMS.value, items),
    ):
        sheet = workbook[sheet_name]
        for row in rows:
            sheet.append(list(row))
    workbook.save(workbook_path)
    return workbook_path


@pytest.fixture
def workbook_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory that creates an empty input workbook in a temp folder."""

    def _create_workbook(
        *,
        subdir: str | None = None,
        filename: str = "sales_data.xlsx",
    ) -> Path:
        base_dir = tmp_path if subdir is None else tmp_path / subdir
        base_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = base_dir / filename
        create_sales_workbook(workbook_path, overwrite=True)
        return workbook_path

    return _create_workbook


@pytest.fixture
def empty_workbook_path(workbook_factory: Callable[..., Path]) -> Path:
    """Return a fresh workbook holding only header rows."""

    return workbook_factory(subdir=f"workbook_{uuid.uuid4().hex}")


@pytest.fixture
def sample_workbook_path(empty_workbook_path: Path) -> Path:
    """Return a workbook populated with the sample roster, catalog, and receipts."""

    return fill_workbook(
        empty_workbook_path,
        sellers=SAMPLE_SELLERS,
        products=SAMPLE_PRODUCTS,
        records=SAMPLE_RECORDS,
        items=SAMPLE_ITEMS,
    )


@pytest.fixture
def config_factory(tmp_path: Path, workbook_factory: Callable[..., Path]) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/workbook bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        populate: bool = True,
        company_name: str = "Test Retail",
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        revenue_strategy: str = constants.RevenueStrategyName.SIMPLE.value,
        output_name: Optional[str] = None,
    ) -> ConfigBundle:
        bundle_dir = tmp_path / f"bundle_{uuid.uuid4().hex}"
        bundle_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = workbook_factory(subdir=bundle_dir.name)
        if populate:
            fill_workbook(
                workbook_path,
                sellers=SAMPLE_SELLERS,
                products=SAMPLE_PRODUCTS,
                records=SAMPLE_RECORDS,
                items=SAMPLE_ITEMS,
            )
        data_file_entry = workbook_path.name if make_relative else str(workbook_path)
        output_path = bundle_dir / output_name if output_name else None
        output_line = f"OutputFile = {output_name}\n" if output_name else ""
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                data_file=data_file_entry,
                company_name=company_name,
                schema_version=schema_version,
                revenue_strategy=revenue_strategy,
                output_line=output_line,
            )
        )
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            workbook_path=workbook_path,
            output_path=output_path,
            schema_version=schema_version,
            company_name=company_name,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Load the runtime context for tests through the public API."""

    context = core_logic.load_runtime_context(config_file)
    core_logic.ensure_schema_version(context)
    return context


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="sales-report", description="Sales report")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Provide a list of command specs for indexing tests."""

    def _make_spec(name: str) -> cli.CommandSpec:
        return cli.CommandSpec(
            name,
            f"{name} help",
            lambda subparsers: subparsers.add_parser(name),
            lambda *_: 0,
        )

    return [_make_spec("alpha"), _make_spec("beta"), _make_spec("gamma")]


# ---------------------------------------------------------------------------
# Core logic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sellers() -> list[data_manager.Seller]:
    """Roster of four sellers in a fixed order."""

    return [
        data_manager.Seller(id="A", first_name="Anna", last_name="Adams"),
        data_manager.Seller(id="B", first_name="Boris", last_name="Brown"),
        data_manager.Seller(id="C", first_name="Clara", last_name="Clark"),
        data_manager.Seller(id="D", first_name="Dmitry", last_name="Dunn"),
    ]


@pytest.fixture
def unit_product() -> data_manager.Product:
    """A product whose profit per unit is exactly one currency unit."""

    return data_manager.Product(sku="UNIT", purchase_price=0.0, sale_price=1.0, name="Unit")


@pytest.fixture
def default_options() -> core_logic.ReportOptions:
    """Options wired with the reference strategies."""

    return core_logic.ReportOptions(
        calculate_revenue=strategies.calculate_simple_revenue,
        calculate_bonus=strategies.calculate_bonus_by_profit,
    )


def make_record(
    seller_id: str,
    *items: data_manager.LineItem,
    total_amount: float = 0.0,
    total_discount: float = 0.0,
) -> data_manager.PurchaseRecord:
    """Build a receipt for ``seller_id`` holding ``items``."""

    return data_manager.PurchaseRecord(
        seller_id=seller_id,
        total_amount=total_amount,
        total_discount=total_discount,
        items=tuple(items),
    )
