"""
models.py – Inventory record types.

Item is the stored record; ItemDetails is the same record as the entry and
edit forms hold it (every field a string, the way the user typed it).
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict

from config import DEFAULT_SOURCE

MASK_CHAR = "*"


@dataclass
class Item:
    id: int = 0
    name: str = ""
    price: float = 0.0
    quantity: int = 0
    provider_name: str = ""
    provider_email: str = ""
    provider_phone: str = ""
    source: str = DEFAULT_SOURCE

    def to_details(self) -> "ItemDetails":
        return ItemDetails(
            id=self.id,
            name=self.name,
            price=str(self.price),
            quantity=str(self.quantity),
            provider_name=self.provider_name,
            provider_email=self.provider_email,
            provider_phone=self.provider_phone,
            source=self.source,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Item":
        return cls(
            id=int(data.get("id", 0)),
            name=data.get("name", ""),
            price=float(data.get("price", 0.0)),
            quantity=int(data.get("quantity", 0)),
            provider_name=data.get("provider_name", ""),
            provider_email=data.get("provider_email", ""),
            provider_phone=data.get("provider_phone", ""),
            source=data.get("source", DEFAULT_SOURCE),
        )


@dataclass
class ItemDetails:
    id: int = 0
    name: str = ""
    price: str = ""
    quantity: str = ""
    provider_name: str = ""
    provider_email: str = ""
    provider_phone: str = ""
    source: str = DEFAULT_SOURCE

    def to_item(self) -> Item:
        """
        Convert the form fields to an Item.

        A price that is not a valid number becomes 0.0 and a quantity that
        is not a valid integer becomes 0.
        """
        return Item(
            id=self.id,
            name=self.name,
            price=_to_float_or_zero(self.price),
            quantity=_to_int_or_zero(self.quantity),
            provider_name=self.provider_name,
            provider_email=self.provider_email,
            provider_phone=self.provider_phone,
            source=self.source,
        )


def _to_float_or_zero(value: str) -> float:
    try:
        return float(value.strip())
    except ValueError:
        return 0.0


def _to_int_or_zero(value: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return 0


def format_price(price: float, currency_symbol: str = "$") -> str:
    """Format *price* for display, e.g. 1234.5 -> '$1,234.50'."""
    return f"{currency_symbol}{price:,.2f}"


def mask(value: str) -> str:
    """Replace every character of *value* with MASK_CHAR."""
    return MASK_CHAR * len(value)


def share_text(item: Item) -> str:
    """Plain-text summary of *item* handed to the share target."""
    return (
        f"Item Name: {item.name}\n"
        f"Price: {item.price}\n"
        f"In Stock: {item.quantity}\n"
        f"Provider: {item.provider_name}\n"
        f"Email: {item.provider_email}\n"
        f"Phone: {item.provider_phone}"
    )
