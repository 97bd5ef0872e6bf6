"""Company settings: the single configuration row plus tax computation."""
import logging
import re
import sqlite3
from typing import Optional
from urllib.parse import urlparse

from core.constants import DEFAULT_COMPANY_SETTINGS, FALLBACK_TAX_RATE
from core.errors import PosError, Result, ValidationError
from core.models import CompanySettings, TaxTotals, now_iso

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

SETTINGS_FIELDS = (
    "name",
    "description",
    "tax_enabled",
    "tax_percentage",
    "currency_symbol",
    "language",
    "logo_url",
    "address",
    "phone",
    "email",
    "website",
)


def compute_tax(subtotal: float, rate: float) -> TaxTotals:
    """Tax is rounded to cents once; total is subtotal plus that tax."""
    tax = round(subtotal * rate, 2)
    return TaxTotals(tax=tax, total=round(subtotal + tax, 2))


def _is_valid_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme and parsed.netloc)


def validate_settings(fields: dict) -> None:
    if "name" in fields and not (fields["name"] or "").strip():
        raise ValidationError("Company name is required")
    if "tax_percentage" in fields:
        pct = fields["tax_percentage"]
        if pct is None or not 0 <= float(pct) <= 100:
            raise ValidationError("Tax percentage must be between 0 and 100")
    if fields.get("email") and not EMAIL_RE.match(fields["email"]):
        raise ValidationError("Please enter a valid email address")
    if fields.get("website") and not _is_valid_url(fields["website"]):
        raise ValidationError("Please enter a valid website URL")


def _settings_from_row(row: sqlite3.Row) -> CompanySettings:
    return CompanySettings(
        id=str(row["id"]),
        name=row["name"],
        description=row["description"] or "",
        tax_enabled=bool(row["tax_enabled"]),
        tax_percentage=float(row["tax_percentage"] or 0),
        currency_symbol=row["currency_symbol"] or "$",
        language=row["language"] or "en",
        logo_url=row["logo_url"],
        address=row["address"],
        phone=row["phone"],
        email=row["email"],
        website=row["website"],
        created_at=row["created_at"] or "",
        updated_at=row["updated_at"] or "",
    )


class CompanySettingsRepository:
    """Reads and writes the ``company_settings`` row with id 1."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get_settings(self) -> Optional[CompanySettings]:
        row = self.conn.execute("SELECT * FROM company_settings WHERE id = 1").fetchone()
        return _settings_from_row(row) if row else None

    def update_settings(self, **fields) -> Result:
        updates = {k: v for k, v in fields.items() if k in SETTINGS_FIELDS}
        try:
            validate_settings(updates)
            if "tax_enabled" in updates:
                updates["tax_enabled"] = 1 if updates["tax_enabled"] else 0
            updates["updated_at"] = now_iso()
            assignments = ", ".join(f"{column} = ?" for column in updates)
            self.conn.execute(
                f"UPDATE company_settings SET {assignments} WHERE id = 1",
                tuple(updates.values()),
            )
            self.conn.commit()
            return Result.ok(self.get_settings())
        except PosError as e:
            return Result.fail(e)
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.exception("Failed to update company settings: %s", e)
            return Result.failed("Failed to update company settings")

    def reset_to_defaults(self) -> Result:
        return self.update_settings(**DEFAULT_COMPANY_SETTINGS)

    def get_tax_rate(self) -> float:
        """Rate as a fraction; 0 when tax is disabled."""
        try:
            settings = self.get_settings()
        except sqlite3.Error as e:
            logger.exception("Failed to read tax rate: %s", e)
            return FALLBACK_TAX_RATE
        if settings is None:
            return FALLBACK_TAX_RATE
        return settings.tax_percentage / 100 if settings.tax_enabled else 0.0

    def calculate_tax(self, amount: float) -> float:
        return compute_tax(amount, self.get_tax_rate()).tax

    def calculate_total_with_tax(self, subtotal: float) -> TaxTotals:
        return compute_tax(subtotal, self.get_tax_rate())


class StaticTaxSettings:
    """Settings provider with a fixed tax configuration and no storage."""

    def __init__(self, tax_percentage: float = 10.0, tax_enabled: bool = True):
        self.tax_percentage = tax_percentage
        self.tax_enabled = tax_enabled

    def get_tax_rate(self) -> float:
        return self.tax_percentage / 100 if self.tax_enabled else 0.0

    def calculate_total_with_tax(self, subtotal: float) -> TaxTotals:
        return compute_tax(subtotal, self.get_tax_rate())
