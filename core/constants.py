"""Project-wide constants and configuration helpers."""
import os
from pathlib import Path
from typing import Dict, List

from dotenv import load_dotenv

# Load environment variables from a local .env file when present.
env_path = Path(__file__).resolve().parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

DB_PATH: str = os.getenv("POSTPOS_DB_PATH", "data/postpos.db")
BACKUP_DIR: str = os.getenv("POSTPOS_BACKUP_DIR", "backups")
TIMEZONE: str = os.getenv("POSTPOS_TIMEZONE", "UTC")
PRINT_COMMAND: str = os.getenv("POSTPOS_PRINT_COMMAND", "")
SESSION_FILE: str = os.getenv("POSTPOS_SESSION_FILE", ".streamlit/user_session.json")
SESSION_DURATION_DAYS: int = 30
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

PRODUCT_CATEGORIES: List[str] = [
    "Beverages",
    "Bakery",
    "Coffee & Tea",
    "Dairy",
    "Snacks",
    "Frozen Foods",
    "Fresh Produce",
    "Meat & Poultry",
    "Seafood",
    "Pantry Items",
    "Condiments & Sauces",
    "Breakfast Items",
    "Household Items",
    "Personal Care",
    "Electronics",
    "Other",
]

ORDER_STATUSES: List[str] = ["pending", "paid", "completed", "cancelled"]
# Statuses in which an order's items have been taken out of stock
STOCK_COMMITTED_STATUSES = frozenset({"paid", "completed"})
PAYMENT_METHODS: List[str] = ["cash", "card", "transfer"]

LOW_STOCK_THRESHOLD_DEFAULT: int = 10

USER_ROLES: List[str] = ["admin", "manager", "user"]
DEFAULT_PERMISSIONS: Dict[str, List[str]] = {
    "admin": ["*"],
    "manager": [
        "sales.view",
        "sales.create",
        "sales.edit",
        "products.view",
        "products.create",
        "products.edit",
        "products.delete",
        "inventory.view",
        "inventory.edit",
        "reports.view",
        "reports.export",
        "users.view",
        "users.create",
        "users.edit",
        "users.delete",
    ],
    "user": ["sales.view", "sales.create", "products.view"],
}

CUSTOMER_TYPES: List[str] = ["individual", "business"]

DEFAULT_COMPANY_SETTINGS: Dict[str, object] = {
    "name": "Post POS",
    "description": "Modern Point of Sale System",
    "tax_enabled": True,
    "tax_percentage": 10.0,
    "currency_symbol": "$",
    "language": "en",
    "logo_url": None,
    "address": None,
    "phone": None,
    "email": None,
    "website": None,
}
# Used when the settings row cannot be read
FALLBACK_TAX_RATE: float = 0.1

SUPPORTED_CURRENCIES: List[tuple] = [
    ("$", "US Dollar (USD)"),
    ("€", "Euro (EUR)"),
    ("£", "British Pound (GBP)"),
    ("¥", "Japanese Yen (JPY)"),
    ("₹", "Indian Rupee (INR)"),
    ("C$", "Canadian Dollar (CAD)"),
    ("A$", "Australian Dollar (AUD)"),
    ("₽", "Russian Ruble (RUB)"),
    ("¥", "Chinese Yuan (CNY)"),
    ("₩", "South Korean Won (KRW)"),
    ("MX$", "Mexican Peso (MXN)"),
]

# Sidebar menu labels (keep in sync across app and sidebar)
MENU_DASHBOARD = "\U0001F4C8 Dashboard"
MENU_ORDERS = "\U0001F9FE Orders"
MENU_PRODUCTS = "\U0001F4E6 Products"
MENU_INVENTORY = "\U0001F6A8 Inventory"
MENU_CUSTOMERS = "\U0001F465 Customers"
MENU_ANALYTICS = "\U0001F4CA Analytics"
MENU_MEMBERS = "\U0001F9D1‍\U0001F4BB Members"
MENU_SETTINGS = "⚙️ Settings"
