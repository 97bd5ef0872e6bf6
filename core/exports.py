"""Excel and PDF export of tables, and Excel import of products."""
import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import List

import pandas as pd
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table as XlTable, TableStyleInfo as XlTableStyleInfo
from reportlab.lib import colors
from reportlab.lib.pagesizes import landscape, letter
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle

logger = logging.getLogger(__name__)

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

PRODUCT_EXPORT_COLUMNS = {
    "name": "Name",
    "category": "Category",
    "barcode": "Barcode",
    "stock": "Stock",
    "cost": "Cost",
    "price": "Price",
    "is_active": "Active",
    "description": "Description",
}
TEMPLATE_COLUMNS = ["Name", "Category", "Barcode", "Stock", "Cost", "Price", "Description"]
IMPORT_ALIASES = {
    "name": "name",
    "product name": "name",
    "product_name": "name",
    "category": "category",
    "barcode": "barcode",
    "stock": "stock",
    "cost": "cost",
    "price": "price",
    "description": "description",
}


def frame_to_excel(df: pd.DataFrame, sheet_name: str, table_name: str) -> bytes:
    """Write ``df`` to an xlsx workbook as a styled Excel table."""
    buf = BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name)
        ws = writer.sheets[sheet_name]
        max_col = len(df.columns)
        max_row = max(len(df), 1) + 1
        if max_col:
            last_col = get_column_letter(max_col)
            table = XlTable(displayName=table_name, ref=f"A1:{last_col}{max_row}")
            table.tableStyleInfo = XlTableStyleInfo(
                name="TableStyleMedium9",
                showFirstColumn=False,
                showLastColumn=False,
                showRowStripes=True,
                showColumnStripes=False,
            )
            ws.add_table(table)
            for idx, col_name in enumerate(df.columns, start=1):
                ws.column_dimensions[get_column_letter(idx)].width = max(12, len(str(col_name)) + 2)
    return buf.getvalue()


def frame_to_pdf(df: pd.DataFrame) -> bytes:
    buf = BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=landscape(letter))
    data = [list(df.columns)] + df.fillna("").astype(str).values.tolist()
    table = Table(data)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ]
        )
    )
    doc.build([table])
    return buf.getvalue()


def products_export_frame(products: pd.DataFrame) -> pd.DataFrame:
    export_df = products.copy()
    for col in PRODUCT_EXPORT_COLUMNS:
        if col not in export_df.columns:
            export_df[col] = ""
    return export_df[list(PRODUCT_EXPORT_COLUMNS)].rename(columns=PRODUCT_EXPORT_COLUMNS)


def template_excel() -> bytes:
    template_df = pd.DataFrame([[""] * len(TEMPLATE_COLUMNS)], columns=TEMPLATE_COLUMNS)
    return frame_to_excel(template_df, "products", "ProductsTemplate")


def normalize_import_frame(import_df: pd.DataFrame) -> pd.DataFrame:
    """Map friendly headers to field names; raises ValueError on missing columns."""
    renamed = import_df.rename(columns={c: IMPORT_ALIASES.get(str(c).lower().strip(), c) for c in import_df.columns})
    missing = [c for c in ("name", "price") if c not in renamed.columns]
    if missing:
        raise ValueError(f"Missing columns: {', '.join(missing)}")
    for col in ("category", "barcode", "stock", "cost", "description"):
        if col not in renamed.columns:
            renamed[col] = ""
    return renamed[["name", "category", "barcode", "stock", "cost", "price", "description"]].fillna("")


@dataclass
class ImportReport:
    added: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    error_rows: List[dict] = field(default_factory=list)

    def error(self, row_index: int, name: str, message: str) -> None:
        self.errors += 1
        self.error_rows.append({"row_index": row_index, "product_name": name, "error": message})


def _number(raw: str, cast, default):
    raw = str(raw).strip()
    return default if raw == "" else cast(float(raw))


def import_products(catalog, import_df: pd.DataFrame) -> ImportReport:
    """Create or update products from a normalized import frame.

    Rows match existing products by barcode first, then by case-insensitive
    name. Row numbers in the report are spreadsheet rows (header is row 1).
    """
    report = ImportReport()
    existing = catalog.get_products()
    by_barcode = {p.barcode: p for p in existing if p.barcode}
    by_name = {p.name.strip().lower(): p for p in existing}

    for idx, row in import_df.iterrows():
        row_index = int(idx) + 2
        name = str(row["name"]).strip()
        if not name:
            report.skipped += 1
            report.error_rows.append({"row_index": row_index, "product_name": "", "error": "Missing Name"})
            continue
        try:
            price = _number(row["price"], float, 0.0)
            cost = _number(row["cost"], float, 0.0)
            stock = _number(row["stock"], int, None)
        except ValueError:
            report.error(row_index, name, "Invalid number in Price, Cost or Stock")
            continue

        barcode = str(row["barcode"]).strip() or None
        fields = {
            "name": name,
            "price": price,
            "cost": cost,
            "category": str(row["category"]).strip() or "Other",
            "description": str(row["description"]).strip(),
        }
        if barcode:
            fields["barcode"] = barcode
        if stock is not None:
            fields["stock"] = stock

        match = by_barcode.get(barcode) if barcode else None
        match = match or by_name.get(name.lower())
        if match is None:
            result = catalog.create_product(**fields)
            counter = "added"
        else:
            result = catalog.update_product(match.id, **fields)
            counter = "updated"
        if result.success:
            setattr(report, counter, getattr(report, counter) + 1)
            by_name[name.lower()] = result.value
            if barcode:
                by_barcode[barcode] = result.value
        else:
            report.error(row_index, name, result.error)
    logger.info(
        "Product import: %d added, %d updated, %d skipped, %d errors",
        report.added,
        report.updated,
        report.skipped,
        report.errors,
    )
    return report
