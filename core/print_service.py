"""Receipt formatting and thermal printing.

Receipts are serialized to JSON and piped to ``POSTPOS_PRINT_COMMAND``. When
no command is configured, or it fails, the payload is handed back for the
page to show as copyable text together with a PDF rendering.
"""
import json
import logging
import shlex
import subprocess
from dataclasses import asdict, dataclass, field
from datetime import datetime
from io import BytesIO
from typing import List, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from core.constants import PRINT_COMMAND
from core.errors import PrintError
from core.models import CompanySettings, Order

logger = logging.getLogger(__name__)

DEFAULT_FOOTER = "Thank you for your purchase!"
# 80mm thermal roll
RECEIPT_WIDTH = 80 * mm


@dataclass
class ReceiptItem:
    name: str
    quantity: int
    price: float
    total: float


@dataclass
class ReceiptData:
    title: str
    address: str
    phone: str
    items: List[ReceiptItem] = field(default_factory=list)
    subtotal: float = 0.0
    tax: float = 0.0
    tax_rate: float = 0.0
    total: float = 0.0
    footer: str = DEFAULT_FOOTER
    date: str = ""
    time: str = ""

    def to_json(self) -> str:
        data = asdict(self)
        data["taxRate"] = data.pop("tax_rate")
        return json.dumps(data)


@dataclass
class PrintOutcome:
    message: str
    printed: bool
    payload: str
    pdf: Optional[bytes] = None


def format_receipt_data(
    order: Order,
    settings: Optional[CompanySettings],
    custom_tax_rate: Optional[float] = None,
) -> ReceiptData:
    """Build the printable view of ``order``.

    ``custom_tax_rate`` is a percentage overriding the configured one. Tax is
    only added to the total when tax is enabled in ``settings``.
    """
    subtotal = order.subtotal or 0.0
    if custom_tax_rate is not None:
        rate_pct = custom_tax_rate
    else:
        rate_pct = settings.tax_percentage if settings else 0.0
    tax = round(subtotal * rate_pct / 100, 2)
    tax_enabled = bool(settings and settings.tax_enabled)
    created = datetime.fromisoformat(order.created_at)

    return ReceiptData(
        title=(settings.name if settings else "") or "Receipt",
        address=(settings.address if settings else "") or "",
        phone=f"Phone: {settings.phone}" if settings and settings.phone else "",
        items=[
            ReceiptItem(
                name=item.product_name,
                quantity=item.quantity,
                price=item.unit_price,
                total=item.total_price,
            )
            for item in order.items
        ],
        subtotal=subtotal,
        tax=tax,
        tax_rate=rate_pct,
        total=round(subtotal + tax, 2) if tax_enabled else subtotal,
        footer=DEFAULT_FOOTER,
        date=created.strftime("%m/%d/%Y"),
        time=created.strftime("%I:%M %p"),
    )


def receipt_to_pdf(receipt: ReceiptData, currency: str = "$") -> bytes:
    """Render the receipt on a narrow page sized for a thermal roll."""
    styles = getSampleStyleSheet()
    buf = BytesIO()
    rows = [["Item", "Qty", "Price", "Total"]]
    rows += [
        [item.name, str(item.quantity), f"{currency}{item.price:.2f}", f"{currency}{item.total:.2f}"]
        for item in receipt.items
    ]
    rows += [
        ["Subtotal", "", "", f"{currency}{receipt.subtotal:.2f}"],
        [f"Tax ({receipt.tax_rate:g}%)", "", "", f"{currency}{receipt.tax:.2f}"],
        ["Total", "", "", f"{currency}{receipt.total:.2f}"],
    ]
    table = Table(rows, colWidths=[30 * mm, 10 * mm, 14 * mm, 16 * mm])
    n_items = len(receipt.items)
    table.setStyle(
        TableStyle(
            [
                ("FONTSIZE", (0, 0), (-1, -1), 7),
                ("LINEBELOW", (0, 0), (-1, 0), 0.5, colors.black),
                ("LINEABOVE", (0, n_items + 1), (-1, n_items + 1), 0.5, colors.black),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
            ]
        )
    )
    story = [Paragraph(f"<b>{escape(receipt.title)}</b>", styles["Title"])]
    for line in (receipt.address, receipt.phone, f"{receipt.date} {receipt.time}"):
        if line.strip():
            story.append(Paragraph(escape(line), styles["Normal"]))
    story += [Spacer(1, 4 * mm), table, Spacer(1, 4 * mm), Paragraph(escape(receipt.footer), styles["Italic"])]

    doc = SimpleDocTemplate(
        buf,
        pagesize=(RECEIPT_WIDTH, (120 + 8 * n_items) * mm),
        leftMargin=4 * mm,
        rightMargin=4 * mm,
        topMargin=4 * mm,
        bottomMargin=4 * mm,
    )
    doc.build(story)
    return buf.getvalue()


def _fallback(receipt: ReceiptData, payload: str, reason: str) -> PrintOutcome:
    return PrintOutcome(
        message=f"Receipt data ready to copy ({reason})",
        printed=False,
        payload=payload,
        pdf=receipt_to_pdf(receipt),
    )


def print_thermal_receipt(receipt: ReceiptData, command: str = PRINT_COMMAND) -> PrintOutcome:
    """Send the receipt to the native printer command.

    Raises PrintError when the command reports a fatal crash; every other
    failure falls back to the copy/PDF outcome.
    """
    payload = receipt.to_json()
    if not command:
        return _fallback(receipt, payload, "no printer configured")

    try:
        proc = subprocess.run(
            shlex.split(command),
            input=payload,
            capture_output=True,
            text=True,
        )
    except OSError as e:
        logger.warning("Print command could not be started, falling back: %s", e)
        return _fallback(receipt, payload, "printer unavailable")

    if proc.returncode == 0:
        return PrintOutcome(
            message=proc.stdout.strip() or "Receipt sent to printer",
            printed=True,
            payload=payload,
        )

    detail = (proc.stderr or proc.stdout or "").strip()
    if "fatal" in detail.lower() or "crash" in detail.lower():
        raise PrintError(f"Print service crashed: {detail}")
    logger.warning("Print command failed (exit %s), falling back: %s", proc.returncode, detail)
    return _fallback(receipt, payload, "printer error")
