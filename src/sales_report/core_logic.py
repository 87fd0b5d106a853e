"""Business logic layer for the seller sales report.

The heart of this module is :func:`analyze_sales_data`, a pure pipeline that
validates its inputs, joins receipts against the product catalog and the
seller roster, ranks sellers by profit, assigns bonuses, and shapes the final
report lines. It performs no I/O; the workbook helpers at the bottom of the
module only wire the data access layer to that pipeline for the CLI.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from decimal import ROUND_HALF_UP, Decimal
from operator import attrgetter
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from openpyxl.workbook import Workbook

from . import data_manager, log
from .constants import EXPECTED_SCHEMA_VERSION, TOP_PRODUCTS_LIMIT
from .strategies import (
    BONUS_STRATEGIES,
    REVENUE_STRATEGIES,
    BonusStrategy,
    RevenueStrategy,
    SellerProfile,
)


CENT = Decimal("0.01")


class ReportInputError(Exception):
    """Raised when report inputs are malformed; nothing is computed."""


class MissingInputData(ReportInputError):
    """Raised when a required input collection is absent, not a sequence, or empty."""


class MissingPurchaseData(MissingInputData):
    """Raised when purchase records are unusable."""


class MissingProductData(MissingInputData):
    """Raised when the product catalog is unusable."""


class MissingSellerData(MissingInputData):
    """Raised when the seller roster is unusable."""


class InvalidConfiguration(ReportInputError):
    """Raised when report options are missing or not a structured object."""


class MissingStrategy(InvalidConfiguration):
    """Raised when a revenue or bonus strategy was not supplied."""


class StrategyNotCallable(InvalidConfiguration):
    """Raised when a supplied strategy cannot be invoked."""


@dataclass(frozen=True)
class ReportOptions:
    """Strategies injected into :func:`analyze_sales_data`."""

    calculate_revenue: Optional[RevenueStrategy] = None
    calculate_bonus: Optional[BonusStrategy] = None


@dataclass
class SellerStats:
    """Running totals for one roster seller during a single report pass."""

    id: str
    name: str
    revenue: float = 0.0
    profit: float = 0.0
    sales_count: int = 0
    products_sold: Dict[str, int] = field(default_factory=dict)
    bonus: float = 0.0
    top_products: List[data_manager.TopProduct] = field(default_factory=list)


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration and workbook references used by the CLI."""

    settings: data_manager.ConfigSettings
    workbook: Workbook


SalesInput = Union[data_manager.SalesData, Mapping]
OptionsInput = Union[ReportOptions, Mapping]


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _collection(data: Any, name: str) -> Any:
    if data is None:
        return None
    if isinstance(data, Mapping):
        return data.get(name)
    return getattr(data, name, None)


def _require_collection(data: Any, name: str, error: type[MissingInputData], label: str) -> Sequence:
    value = _collection(data, name)
    if value is None or not _is_sequence(value) or len(value) == 0:
        log.error("Invalid input data: %s are missing, not a sequence, or empty", label)
        raise error(f"Invalid input data: no {label} supplied")
    return value


def _coerce_row(row: Any, row_type: type, from_mapping: Callable[[Mapping], Any]) -> Any:
    if isinstance(row, row_type):
        return row
    if isinstance(row, Mapping):
        return from_mapping(row)
    raise TypeError(f"unsupported row type {type(row).__name__}")


def _coerce_purchase_record(row: Any) -> data_manager.PurchaseRecord:
    record = _coerce_row(row, data_manager.PurchaseRecord, data_manager.purchase_record_from_mapping)
    items = tuple(data_manager.coerce_line_item(item) for item in record.items)
    return record if items == tuple(record.items) else replace(record, items=items)


def _normalize_rows(
    rows: Sequence,
    coerce: Callable[[Any], Any],
    error: type[MissingInputData],
    label: str,
) -> List[Any]:
    normalized = []
    for position, row in enumerate(rows):
        try:
            normalized.append(coerce(row))
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            log.error("Invalid input data: %s entry %d is malformed: %s", label, position, exc)
            raise error(f"Invalid input data: malformed {label} entry at position {position}") from exc
    return normalized


def validate_sales_data(data: Optional[SalesInput]) -> data_manager.SalesData:
    """Check the three input collections before any aggregation happens.

    ``data`` may be a :class:`~sales_report.data_manager.SalesData` bundle or
    any mapping exposing ``purchase_records``, ``products``, and ``sellers``.
    Collections are checked in that order and the first failure wins.

    Rows may be the typed records from :mod:`sales_report.data_manager` or
    plain mappings keyed by field name (``{"id": ..., "first_name": ...}``,
    receipts with a list of item mappings). Mapping rows are converted into
    the typed records here, so the pipeline only ever sees dataclasses.

    Args:
        data (SalesData | Mapping | None): Input bundle supplied by the caller.

    Returns:
        data_manager.SalesData: The collections as typed rows in one bundle.

    Raises:
        MissingPurchaseData: If purchase records are absent, not a sequence,
            or empty, or a receipt row is malformed. A missing bundle is
            reported the same way.
        MissingProductData: If the product catalog is unusable.
        MissingSellerData: If the seller roster is unusable.
    """

    purchase_records = _require_collection(data, "purchase_records", MissingPurchaseData, "purchase records")
    products = _require_collection(data, "products", MissingProductData, "products")
    sellers = _require_collection(data, "sellers", MissingSellerData, "sellers")
    return data_manager.SalesData(
        purchase_records=_normalize_rows(
            purchase_records, _coerce_purchase_record, MissingPurchaseData, "purchase records"
        ),
        products=_normalize_rows(
            products,
            lambda row: _coerce_row(row, data_manager.Product, data_manager.product_from_mapping),
            MissingProductData,
            "products",
        ),
        sellers=_normalize_rows(
            sellers,
            lambda row: _coerce_row(row, data_manager.Seller, data_manager.seller_from_mapping),
            MissingSellerData,
            "sellers",
        ),
    )


def validate_options(options: Optional[OptionsInput]) -> ReportOptions:
    """Check that both strategies are present and callable.

    Args:
        options (ReportOptions | Mapping | None): Either a
            :class:`ReportOptions` or a mapping with ``calculate_revenue`` and
            ``calculate_bonus`` keys.

    Returns:
        ReportOptions: Options with both strategies guaranteed callable.

    Raises:
        InvalidConfiguration: If ``options`` is missing or not structured.
        MissingStrategy: If either strategy is absent.
        StrategyNotCallable: If either strategy is not callable.
    """

    if isinstance(options, ReportOptions):
        calculate_revenue = options.calculate_revenue
        calculate_bonus = options.calculate_bonus
    elif isinstance(options, Mapping):
        calculate_revenue = options.get("calculate_revenue")
        calculate_bonus = options.get("calculate_bonus")
    else:
        log.error("Invalid report options: expected ReportOptions or a mapping, got %r", type(options).__name__)
        raise InvalidConfiguration("Invalid report options: options are missing or malformed")

    if calculate_revenue is None or calculate_bonus is None:
        log.error("Invalid report options: revenue or bonus strategy not supplied")
        raise MissingStrategy("Invalid report options: calculation strategies are not supplied")

    if not callable(calculate_revenue) or not callable(calculate_bonus):
        log.error("Invalid report options: strategies must be callable")
        raise StrategyNotCallable("Invalid report options: calculation strategies must be callable")

    return ReportOptions(calculate_revenue=calculate_revenue, calculate_bonus=calculate_bonus)


def build_seller_stats(sellers: Sequence[data_manager.Seller]) -> List[SellerStats]:
    """Create one zeroed :class:`SellerStats` per roster entry, in roster order."""

    return [
        SellerStats(id=seller.id, name=f"{seller.first_name} {seller.last_name}")
        for seller in sellers
    ]


def aggregate_seller_stats(
    data: data_manager.SalesData,
    calculate_revenue: RevenueStrategy,
) -> List[SellerStats]:
    """Accumulate revenue, profit, sales count, and quantities per seller.

    Revenue comes straight from the receipt totals (amount minus discount).
    Profit is summed per line item as the strategy's revenue minus the
    catalog purchase cost. Receipts from sellers outside the roster are
    skipped entirely; line items whose SKU is not in the catalog are skipped
    but their receipt still counts as a sale.

    Args:
        data (data_manager.SalesData): Validated input bundle.
        calculate_revenue (RevenueStrategy): Per-line revenue strategy.

    Returns:
        list[SellerStats]: Stats in roster order, one per seller.
    """

    seller_stats = build_seller_stats(data.sellers)
    stats_by_id = {stats.id: stats for stats in seller_stats}
    product_by_sku = {product.sku: product for product in data.products}
    log.debug(
        "Indexed %d sellers and %d products",
        len(stats_by_id),
        len(product_by_sku),
    )

    for record in data.purchase_records:
        stats = stats_by_id.get(record.seller_id)
        if stats is None:
            log.debug("Skipping purchase record for unknown seller '%s'", record.seller_id)
            continue

        stats.sales_count += 1
        stats.revenue += record.total_amount - record.total_discount

        for item in record.items:
            product = product_by_sku.get(item.sku)
            if product is None:
                log.debug("Skipping line item with unknown sku '%s'", item.sku)
                continue

            cost = product.purchase_price * item.quantity
            item_revenue = calculate_revenue(item, product)
            stats.profit += item_revenue - cost
            stats.products_sold[item.sku] = stats.products_sold.get(item.sku, 0) + item.quantity

    return seller_stats


def build_top_products(
    products_sold: Mapping[str, int],
    limit: int = TOP_PRODUCTS_LIMIT,
) -> List[data_manager.TopProduct]:
    """Return the ``limit`` best-selling SKUs by quantity, highest first.

    Equal quantities keep the order in which the SKUs were first sold.
    """

    ranked = sorted(
        (data_manager.TopProduct(sku=sku, quantity=quantity) for sku, quantity in products_sold.items()),
        key=attrgetter("quantity"),
        reverse=True,
    )
    return ranked[:limit]


def rank_sellers(
    seller_stats: Sequence[SellerStats],
    sellers: Sequence[data_manager.Seller],
    calculate_bonus: BonusStrategy,
) -> List[SellerStats]:
    """Order sellers by profit and attach bonus amounts and top products.

    The sort is stable, so sellers with equal profit stay in roster order.
    ``calculate_bonus`` receives the post-sort index, the number of sellers,
    and a :class:`~sales_report.strategies.SellerProfile`; its fraction is
    multiplied by the seller's profit to give the bonus in currency units.

    Args:
        seller_stats (Sequence[SellerStats]): Aggregated stats in roster order.
        sellers (Sequence[data_manager.Seller]): Roster used to build the
            profile handed to the bonus strategy.
        calculate_bonus (BonusStrategy): Rank-to-fraction strategy.

    Returns:
        list[SellerStats]: The same stats objects in profit-descending order.
    """

    seller_by_id = {seller.id: seller for seller in sellers}
    ranked = sorted(seller_stats, key=attrgetter("profit"), reverse=True)
    total = len(ranked)

    for index, stats in enumerate(ranked):
        seller = seller_by_id[stats.id]
        profile = SellerProfile(
            id=seller.id,
            first_name=seller.first_name,
            last_name=seller.last_name,
            profit=stats.profit,
        )
        bonus_fraction = calculate_bonus(index, total, profile)
        stats.bonus = stats.profit * bonus_fraction
        stats.top_products = build_top_products(stats.products_sold)

    return ranked


def round_money(value: float) -> float:
    """Round to cents, half away from zero, on the value's decimal form.

    ``Decimal(str(value))`` uses the shortest representation of the float, so
    ``1.005`` rounds to ``1.01`` rather than falling foul of its binary
    approximation.
    """

    # + 0.0 folds a negative zero (e.g. a 0% bonus on a loss) into 0.0
    return float(Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)) + 0.0


def format_results(ranked: Sequence[SellerStats]) -> List[data_manager.RankedResult]:
    """Shape ranked stats into immutable report lines without re-sorting."""

    return [
        data_manager.RankedResult(
            seller_id=stats.id,
            name=stats.name,
            revenue=round_money(stats.revenue),
            profit=round_money(stats.profit),
            sales_count=stats.sales_count,
            top_products=tuple(stats.top_products),
            bonus=round_money(stats.bonus),
        )
        for stats in ranked
    ]


def analyze_sales_data(
    data: Optional[SalesInput],
    options: Optional[OptionsInput],
) -> List[data_manager.RankedResult]:
    """Build the per-seller sales report.

    All validation runs before any aggregation, so a failure never produces a
    partial report. The result holds exactly one line per roster seller,
    including sellers without receipts, in profit-descending order.

    Args:
        data (SalesData | Mapping): Purchase records, products, and sellers.
        options (ReportOptions | Mapping): Revenue and bonus strategies.

    Returns:
        list[data_manager.RankedResult]: Report lines ranked by profit.

    Raises:
        ReportInputError: One of its subclasses when inputs or options are
            malformed.
    """

    sales_data = validate_sales_data(data)
    report_options = validate_options(options)

    seller_stats = aggregate_seller_stats(sales_data, report_options.calculate_revenue)
    ranked = rank_sellers(seller_stats, sales_data.sellers, report_options.calculate_bonus)
    results = format_results(ranked)

    log.info(
        "Built sales report for %d sellers from %d purchase records",
        len(results),
        len(sales_data.purchase_records),
    )
    return results


def build_report_options(settings: data_manager.ConfigSettings) -> ReportOptions:
    """Resolve the strategy names from ``config.ini`` into :class:`ReportOptions`.

    Raises:
        InvalidConfiguration: If either configured name is not registered.
    """

    calculate_revenue = REVENUE_STRATEGIES.get(settings.revenue_strategy)
    if calculate_revenue is None:
        log.error("Unknown revenue strategy '%s'", settings.revenue_strategy)
        raise InvalidConfiguration(
            f"Unknown revenue strategy: {settings.revenue_strategy} "
            f"(expected one of {', '.join(sorted(REVENUE_STRATEGIES))})"
        )

    calculate_bonus = BONUS_STRATEGIES.get(settings.bonus_strategy)
    if calculate_bonus is None:
        log.error("Unknown bonus strategy '%s'", settings.bonus_strategy)
        raise InvalidConfiguration(
            f"Unknown bonus strategy: {settings.bonus_strategy} "
            f"(expected one of {', '.join(sorted(BONUS_STRATEGIES))})"
        )

    return ReportOptions(calculate_revenue=calculate_revenue, calculate_bonus=calculate_bonus)


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and the sales workbook.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer searches upward from the current
            working directory.

    Returns:
        RuntimeContext: Settings bundled with the opened workbook.

    Raises:
        FileNotFoundError: If the configuration file or workbook cannot be
            located.
        KeyError: When mandatory configuration options are missing.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    workbook = data_manager.open_workbook(settings.data_file)
    log.info("Loaded runtime context for workbook '%s'", settings.data_file)
    return RuntimeContext(settings=settings, workbook=workbook)


def ensure_schema_version(context: RuntimeContext) -> None:
    """Reject workbooks whose declared layout version this code does not read.

    Raises:
        RuntimeError: If the schema version declared in the configuration does
            not match ``EXPECTED_SCHEMA_VERSION``.
    """
    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Workbook schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Workbook schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


def generate_report(context: RuntimeContext) -> List[data_manager.RankedResult]:
    """Load the workbook data and run :func:`analyze_sales_data` on it."""

    data = data_manager.load_sales_data(context.workbook)
    options = build_report_options(context.settings)
    return analyze_sales_data(data, options)


def persist_report(
    context: RuntimeContext,
    results: Sequence[data_manager.RankedResult],
    destination: Optional[Path] = None,
) -> Path:
    """Write the ``SellerReport`` sheet and save the workbook.

    Args:
        context (RuntimeContext): Context holding the workbook to modify.
        results (Sequence[data_manager.RankedResult]): Report lines in rank
            order.
        destination (Path | None): Target file; defaults to the configured
            ``OutputFile``.

    Returns:
        Path: The path the workbook was saved to.
    """

    target = Path(destination) if destination is not None else context.settings.output_file
    written = data_manager.write_seller_report(context.workbook, results)
    data_manager.save_workbook(context.workbook, target)
    log.info("Exported %d seller rows to '%s'", written, target)
    return target
