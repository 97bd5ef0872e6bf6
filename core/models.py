"""Plain data records shared by repositories and pages."""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional
from zoneinfo import ZoneInfo

from core.constants import TIMEZONE

APP_TZ = ZoneInfo(TIMEZONE)


def now_iso() -> str:
    """Current time as an ISO-8601 string in the configured timezone."""
    return datetime.now(APP_TZ).isoformat()


class TaxTotals(NamedTuple):
    tax: float
    total: float


@dataclass
class Product:
    id: str
    name: str
    price: float
    cost: float = 0.0
    stock: int = 0
    category: str = "Other"
    description: str = ""
    barcode: Optional[str] = None
    image: Optional[str] = None
    is_active: bool = True
    created_at: str = ""
    updated_at: str = ""

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock <= 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class OrderItem:
    product_id: str
    product_name: str
    quantity: int
    unit_price: float
    total_price: float


@dataclass
class Order:
    id: str
    items: List[OrderItem]
    subtotal: float
    tax: float
    total: float
    status: str
    created_at: str
    updated_at: str
    user_id: Optional[str] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    completed_at: Optional[str] = None

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TopProduct:
    product_id: str
    product_name: str
    total_sold: int
    total_revenue: float
    average_price: float = 0.0


@dataclass
class Customer:
    id: str
    customer_number: str
    first_name: str
    last_name: str
    country: str = "US"
    customer_type: str = "individual"
    company_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    phone_secondary: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    customer_segment: Optional[str] = None
    credit_limit: float = 0.0
    current_balance: float = 0.0
    tax_exempt: bool = False
    tax_id: Optional[str] = None
    loyalty_points: int = 0
    total_purchases: float = 0.0
    total_orders: int = 0
    first_purchase_date: Optional[str] = None
    last_purchase_date: Optional[str] = None
    is_active: bool = True
    notes: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    custom_fields: Dict[str, Any] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""
    created_by: Optional[str] = None
    deleted_at: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class User:
    id: str
    email: str
    name: str
    role: str
    permissions: List[str]
    created_at: str = ""
    last_login: Optional[str] = None
    deleted_at: Optional[str] = None


@dataclass
class CompanySettings:
    id: str
    name: str
    description: str
    tax_enabled: bool
    tax_percentage: float
    currency_symbol: str
    language: str
    logo_url: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Page:
    """One page of a paginated listing."""

    items: List[Any]
    total_count: int
    current_page: int
    limit: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return -(-self.total_count // self.limit)

    @property
    def has_next_page(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.current_page > 1
