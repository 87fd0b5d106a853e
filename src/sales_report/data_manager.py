"""Data access layer for the seller sales report.

This module provides low-level helpers that read sales data from and write the
finished report to an Excel workbook. Report calculations belong elsewhere.

The public API is designed around three responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: opening and persisting the Excel file.
3. Sheet operations: loading the seller roster, product catalog, and
   purchase records as structured rows, and writing the ``SellerReport``
   sheet.
"""


from __future__ import annotations

import configparser
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from openpyxl.styles import Font
from openpyxl.workbook import Workbook
import openpyxl

from . import log
from .constants import BonusStrategyName, RevenueStrategyName, SheetName


CONFIG_FILE_NAME = "config.ini"
SELLERS_SHEET = SheetName.SELLERS.value
PRODUCTS_SHEET = SheetName.PRODUCTS.value
PURCHASE_RECORDS_SHEET = SheetName.PURCHASE_RECORDS.value
PURCHASE_ITEMS_SHEET = SheetName.PURCHASE_ITEMS.value
SELLER_REPORT_SHEET = SheetName.SELLER_REPORT.value

SELLER_REPORT_COLUMNS: Tuple[str, ...] = (
    "Rank",
    "SellerID",
    "Name",
    "Revenue",
    "Profit",
    "SalesCount",
    "Bonus",
    "TopProducts",
)


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    company_name: str
    schema_version: str
    output_file: Path
    revenue_strategy: str = RevenueStrategyName.SIMPLE.value
    bonus_strategy: str = BonusStrategyName.PROFIT_RANK.value


@dataclass(frozen=True)
class Seller:
    """Roster entry from the ``Sellers`` sheet."""

    id: str
    first_name: str
    last_name: str


@dataclass(frozen=True)
class Product:
    """Catalog entry from the ``Products`` sheet.

    Only ``sku`` and ``purchase_price`` are read by the report core. The sale
    price is consumed by revenue strategies.
    """

    sku: str
    purchase_price: float
    sale_price: Optional[float] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class LineItem:
    """One product line of a receipt.

    ``sale_price`` and ``discount`` (a percentage) belong to the revenue
    strategy; the core only relies on ``sku`` and ``quantity``.
    """

    sku: str
    quantity: int
    sale_price: Optional[float] = None
    discount: float = 0.0


@dataclass(frozen=True)
class PurchaseRecord:
    """A receipt issued by a single seller."""

    seller_id: str
    total_amount: float
    total_discount: float
    items: Tuple[LineItem, ...] = ()
    receipt_id: Optional[str] = None


@dataclass(frozen=True)
class SalesData:
    """Bundle of the three input collections consumed by the report."""

    purchase_records: Sequence[PurchaseRecord]
    products: Sequence[Product]
    sellers: Sequence[Seller]


@dataclass(frozen=True)
class TopProduct:
    """A SKU together with the quantity a seller sold of it."""

    sku: str
    quantity: int


@dataclass(frozen=True)
class RankedResult:
    """Final report line for one seller, money values rounded to cents."""

    seller_id: str
    name: str
    revenue: float
    profit: float
    sales_count: int
    top_products: Tuple[TopProduct, ...] = field(default_factory=tuple)
    bonus: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        """Return the plain mapping shape used by exports and tests."""

        return {
            "seller_id": self.seller_id,
            "name": self.name,
            "revenue": self.revenue,
            "profit": self.profit,
            "sales_count": self.sales_count,
            "top_products": [
                {"sku": product.sku, "quantity": product.quantity}
                for product in self.top_products
            ],
            "bonus": self.bonus,
        }


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the report runs.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. Otherwise the function walks up from the current
    working directory toward the filesystem root looking for a file named
    ``CONFIG_FILE_NAME``; the first match is considered authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If the search exhausts all parent directories without
            finding ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Validation of required entries happens in :func:`parse_settings`.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = Path(config_path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path)
    return parser


def _resolve_path(raw: str, base_path: Path) -> Path:
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = (base_path / path).resolve()
    return path


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    The ``[System]`` section is mandatory. The ``[Report]`` section is
    optional: ``OutputFile`` falls back to the data file itself so the report
    sheet is written next to its inputs, and the strategy names fall back to
    ``simple`` revenue and ``profit-rank`` bonuses. Relative paths are anchored
    to ``base_path`` (or the current working directory).

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory used to resolve relative paths.

    Returns:
        ConfigSettings: Immutable settings with absolute file paths.

    Raises:
        KeyError: If one of the required ``[System]`` options is missing.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        company_name = parser.get("System", "CompanyName")
        schema_version = parser.get("System", "SchemaVersion")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    if base_path is None:
        base_path = Path.cwd()

    data_file_path = _resolve_path(data_file_raw, base_path)
    output_raw = parser.get("Report", "OutputFile", fallback=None)
    output_file_path = _resolve_path(output_raw, base_path) if output_raw else data_file_path

    return ConfigSettings(
        data_file=data_file_path,
        company_name=company_name,
        schema_version=schema_version,
        output_file=output_file_path,
        revenue_strategy=parser.get(
            "Report", "RevenueStrategy", fallback=RevenueStrategyName.SIMPLE.value
        ).strip(),
        bonus_strategy=parser.get(
            "Report", "BonusStrategy", fallback=BonusStrategyName.PROFIT_RANK.value
        ).strip(),
    )


def open_workbook(data_file: Path) -> Workbook:
    """Open the sales workbook and return a live ``openpyxl`` workbook.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    return openpyxl.load_workbook(data_file)


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook at ``destination``, creating parent folders."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)


def _iter_sheet_rows(workbook: Workbook, sheet_name: str) -> Iterable[Sequence[object]]:
    sheet = workbook[sheet_name]
    for raw in sheet.iter_rows(min_row=2, values_only=True):
        # skip fully empty rows
        if any(cell is not None for cell in raw):
            yield raw


def iter_sellers(workbook: Workbook) -> Iterable[Seller]:
    """Iterate over the ``Sellers`` worksheet and yield typed roster entries.

    Header and completely empty rows are ignored.
    """

    for raw in _iter_sheet_rows(workbook, SELLERS_SHEET):
        yield deserialize_seller(raw)


def iter_products(workbook: Workbook) -> Iterable[Product]:
    """Iterate over catalog entries stored on the ``Products`` worksheet."""

    for raw in _iter_sheet_rows(workbook, PRODUCTS_SHEET):
        yield deserialize_product(raw)


def iter_purchase_records(workbook: Workbook) -> Iterable[PurchaseRecord]:
    """Stream receipts with their line items attached.

    Line items on ``PurchaseItems`` are grouped by ``ReceiptID`` first, then
    each row of ``PurchaseRecords`` is yielded in sheet order with its items in
    sheet order. Items whose receipt id matches no record are never yielded.

    Args:
        workbook (Workbook): Workbook containing both purchase sheets.

    Yields:
        PurchaseRecord: One receipt per populated ``PurchaseRecords`` row.
    """

    items_by_receipt: Dict[str, List[LineItem]] = defaultdict(list)
    for raw in _iter_sheet_rows(workbook, PURCHASE_ITEMS_SHEET):
        receipt_id, item = deserialize_line_item(raw)
        items_by_receipt[receipt_id].append(item)

    for raw in _iter_sheet_rows(workbook, PURCHASE_RECORDS_SHEET):
        record = deserialize_purchase_record(raw)
        items = items_by_receipt.get(record.receipt_id or "", [])
        yield PurchaseRecord(
            seller_id=record.seller_id,
            total_amount=record.total_amount,
            total_discount=record.total_discount,
            items=tuple(items),
            receipt_id=record.receipt_id,
        )


def load_sales_data(workbook: Workbook) -> SalesData:
    """Read the roster, catalog, and receipts into a :class:`SalesData` bundle."""

    data = SalesData(
        purchase_records=list(iter_purchase_records(workbook)),
        products=list(iter_products(workbook)),
        sellers=list(iter_sellers(workbook)),
    )
    log.debug(
        "Loaded %d purchase records, %d products, %d sellers",
        len(data.purchase_records),
        len(data.products),
        len(data.sellers),
    )
    return data


def write_seller_report(workbook: Workbook, results: Iterable[RankedResult]) -> int:
    """Replace the ``SellerReport`` sheet with the supplied ranked results.

    Any existing report sheet is dropped so that repeated exports never mix
    stale rows with fresh ones. The header row is written in bold, matching
    the input sheets created by ``setup_excel.py``.

    Args:
        workbook (Workbook): Workbook receiving the report sheet.
        results (Iterable[RankedResult]): Report lines in rank order.

    Returns:
        int: Number of seller rows written.
    """

    if SELLER_REPORT_SHEET in workbook.sheetnames:
        workbook.remove(workbook[SELLER_REPORT_SHEET])

    sheet = workbook.create_sheet(title=SELLER_REPORT_SHEET)
    bold_font = Font(bold=True)
    for column_index, column_name in enumerate(SELLER_REPORT_COLUMNS, start=1):
        cell = sheet.cell(row=1, column=column_index)
        cell.value = column_name
        cell.font = bold_font

    written = 0
    for rank, result in enumerate(results, start=1):
        sheet.append(serialize_report_row(rank, result))
        written += 1
    return written


def format_top_products(top_products: Iterable[TopProduct]) -> str:
    """Render top products as ``"SKU:qty, SKU:qty"`` for a single cell."""

    return ", ".join(f"{product.sku}:{product.quantity}" for product in top_products)


def serialize_report_row(rank: int, result: RankedResult) -> list[object]:
    """Convert a report line into the ``SellerReport`` column ordering."""

    return [
        rank,
        result.seller_id,
        result.name,
        result.revenue,
        result.profit,
        result.sales_count,
        result.bonus,
        format_top_products(result.top_products),
    ]


def _to_float(raw: object, default: Optional[float] = 0.0) -> Optional[float]:
    if raw is None or raw == "":
        return default
    return float(Decimal(str(raw)))


def _to_text(raw: object) -> Optional[str]:
    return str(raw) if raw is not None else None


def deserialize_seller(raw_row: Sequence[object]) -> Seller:
    """Convert a raw ``Sellers`` row into a :class:`Seller`.

    Identifiers are coerced to ``str`` because Excel happily turns numeric
    ids into numbers; blank name cells become empty strings.
    """

    seller_id, first_name, last_name = raw_row[:3]
    return Seller(
        id=str(seller_id),
        first_name=_to_text(first_name) or "",
        last_name=_to_text(last_name) or "",
    )


def deserialize_product(raw_row: Sequence[object]) -> Product:
    """Convert a raw ``Products`` row into a :class:`Product`.

    A blank purchase price is treated as zero cost; a blank sale price stays
    ``None`` so revenue strategies can tell it apart from a free item.
    """

    sku, name, purchase_raw, sale_raw = raw_row[:4]
    return Product(
        sku=str(sku),
        purchase_price=_to_float(purchase_raw),
        sale_price=_to_float(sale_raw, default=None),
        name=_to_text(name),
    )


def deserialize_line_item(raw_row: Sequence[object]) -> Tuple[str, LineItem]:
    """Convert a raw ``PurchaseItems`` row into ``(receipt_id, LineItem)``."""

    receipt_id, sku, quantity_raw, sale_raw, discount_raw = raw_row[:5]
    quantity = int(Decimal(str(quantity_raw))) if quantity_raw is not None else 0
    return str(receipt_id), LineItem(
        sku=str(sku),
        quantity=quantity,
        sale_price=_to_float(sale_raw, default=None),
        discount=_to_float(discount_raw),
    )


def deserialize_purchase_record(raw_row: Sequence[object]) -> PurchaseRecord:
    """Convert a raw ``PurchaseRecords`` row into an item-less :class:`PurchaseRecord`."""

    receipt_id, seller_id, total_amount_raw, total_discount_raw = raw_row[:4]
    return PurchaseRecord(
        seller_id=str(seller_id),
        total_amount=_to_float(total_amount_raw),
        total_discount=_to_float(total_discount_raw),
        receipt_id=_to_text(receipt_id),
    )


def seller_from_mapping(raw: Mapping[str, Any]) -> Seller:
    """Build a :class:`Seller` from a JSON-style roster entry.

    Raises:
        KeyError: If ``id`` is absent.
    """

    return Seller(
        id=str(raw["id"]),
        first_name=_to_text(raw.get("first_name")) or "",
        last_name=_to_text(raw.get("last_name")) or "",
    )


def product_from_mapping(raw: Mapping[str, Any]) -> Product:
    """Build a :class:`Product` from a JSON-style catalog entry.

    Raises:
        KeyError: If ``sku`` or ``purchase_price`` is absent.
    """

    return Product(
        sku=str(raw["sku"]),
        purchase_price=_to_float(raw["purchase_price"]),
        sale_price=_to_float(raw.get("sale_price"), default=None),
        name=_to_text(raw.get("name")),
    )


def coerce_line_item(raw: object) -> LineItem:
    """Return ``raw`` unchanged if it is a :class:`LineItem`, else build one from a mapping.

    Raises:
        KeyError: If ``sku`` or ``quantity`` is absent.
        TypeError: If ``raw`` is neither a line item nor a mapping.
    """

    if isinstance(raw, LineItem):
        return raw
    if not isinstance(raw, Mapping):
        raise TypeError(f"Unsupported line item: {type(raw).__name__}")
    return LineItem(
        sku=str(raw["sku"]),
        quantity=int(Decimal(str(raw["quantity"]))),
        sale_price=_to_float(raw.get("sale_price"), default=None),
        discount=_to_float(raw.get("discount")),
    )


def purchase_record_from_mapping(raw: Mapping[str, Any]) -> PurchaseRecord:
    """Build a :class:`PurchaseRecord` and its line items from a JSON-style receipt.

    Raises:
        KeyError: If ``seller_id``, ``total_amount`` or a line item key is absent.
        TypeError: If ``items`` is not a list of line items or mappings.
    """

    items = raw.get("items") or ()
    if isinstance(items, (str, bytes)) or not isinstance(items, Sequence):
        raise TypeError("Receipt items must be a sequence")
    return PurchaseRecord(
        seller_id=str(raw["seller_id"]),
        total_amount=_to_float(raw["total_amount"]),
        total_discount=_to_float(raw.get("total_discount")),
        items=tuple(coerce_line_item(item) for item in items),
        receipt_id=_to_text(raw.get("receipt_id")),
    )
