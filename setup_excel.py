"""Create the blank workbook that sellers, products, and receipts are typed into.

``sales-report`` reads four input sheets (Sellers, Products, PurchaseRecords,
PurchaseItems) from the workbook named by ``[System] DataFile``. Run this
script once per data file to lay those sheets out with their header rows:

    python setup_excel.py --config config.ini

The test fixtures call :func:`create_sales_workbook` directly.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Mapping, Optional, Sequence
import sys

import openpyxl
from openpyxl.styles import Font

from sales_report import data_manager
from sales_report.constants import SheetName

SHEET_COLUMNS: Mapping[str, Sequence[str]] = {
    SheetName.SELLERS.value: ("SellerID", "FirstName", "LastName"),
    SheetName.PRODUCTS.value: ("SKU", "ProductName", "PurchasePrice", "SalePrice"),
    SheetName.PURCHASE_RECORDS.value: ("ReceiptID", "SellerID", "TotalAmount", "TotalDiscount"),
    SheetName.PURCHASE_ITEMS.value: ("ReceiptID", "SKU", "Quantity", "SalePrice", "Discount"),
}


def create_sales_workbook(
    destination: Path,
    *,
    sheet_columns: Mapping[str, Sequence[str]] = SHEET_COLUMNS,
    overwrite: bool = False,
) -> Path:
    """Write one sheet per entry of ``sheet_columns``, headers in bold.

    Raises:
        FileExistsError: If ``destination`` exists and ``overwrite`` is false.
    """

    destination = destination.expanduser().resolve()
    if destination.exists() and not overwrite:
        raise FileExistsError(f"Sales data workbook already exists: {destination}")

    destination.parent.mkdir(parents=True, exist_ok=True)

    workbook = openpyxl.Workbook()
    workbook.remove(workbook.active)

    header_font = Font(bold=True)
    for sheet_name, columns in sheet_columns.items():
        worksheet = workbook.create_sheet(title=sheet_name)
        worksheet.append(list(columns))
        for cell in worksheet[1]:
            cell.font = header_font

    workbook.save(destination)
    return destination


def data_file_from_config(config_path: Optional[Path] = None) -> Path:
    """Return the resolved ``DataFile`` of the (discovered) ``config.ini``."""

    config_path = data_manager.find_config_file(config_path).expanduser().resolve()
    parser = data_manager.read_config(config_path)
    return data_manager.parse_settings(parser, base_path=config_path.parent).data_file


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create the input workbook read by sales-report"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="config.ini to read DataFile from (default: search upwards from the working directory)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Replace an existing data workbook.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Create the data workbook; return 0 on success and 1 on any failure."""

    args = parse_args(argv)

    try:
        data_file = data_file_from_config(args.config)
        print(f"Creating sales data workbook: {data_file}")
        create_sales_workbook(data_file, overwrite=args.force)
    except FileExistsError as exc:
        print(f"{exc}\nPass --force to replace it with an empty workbook.", file=sys.stderr)
        return 1
    except (OSError, KeyError) as exc:
        print(f"Could not create the sales data workbook: {exc}", file=sys.stderr)
        return 1

    print("Done. Fill in Sellers, Products, PurchaseRecords and PurchaseItems, then run 'sales-report report'.")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
