"""
storage.py – Item repository.

This module contains ItemsRepository, the layer the screen models talk to
instead of the database directly.  It owns the rules an item must satisfy
before it is persisted:

  - name, price and quantity are present;
  - price is a finite number and neither price nor quantity is negative;
  - the supplier email and phone, when filled in, are well formed.

Breaking a rule raises EntryValidationError so that a caller which skipped
the form validation cannot store a bad record.
"""

import logging
import math
import re
from typing import List, Optional

from models import Item

logger = logging.getLogger("Inventory")

EMAIL_PATTERN = re.compile(r"\S+@\S+\.(com|ru)")
PHONE_PATTERN = re.compile(r"\d{11}")


class EntryValidationError(ValueError):
    """
    Raised by ItemsRepository when an item fails validation.

    Attributes
    ----------
    field : str or None
        The name of the Item field that caused the error.
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field: Optional[str] = field


def is_valid_email(email: str) -> bool:
    """True when *email* is blank or contains something like name@host.com."""
    return not email.strip() or EMAIL_PATTERN.search(email) is not None


def is_valid_phone(phone: str) -> bool:
    """True when *phone* is blank or exactly eleven digits."""
    return not phone.strip() or PHONE_PATTERN.fullmatch(phone) is not None


def validate_item(item: Item) -> None:
    """Raise EntryValidationError if *item* may not be persisted."""
    if not item.name.strip():
        raise EntryValidationError("Name cannot be empty.", field="name")
    if item.price is None or not math.isfinite(item.price) or item.price < 0:
        raise EntryValidationError("Price must be a finite, non-negative number.", field="price")
    if item.quantity is None or item.quantity < 0:
        raise EntryValidationError("Quantity must not be negative.", field="quantity")
    if not is_valid_email(item.provider_email):
        raise EntryValidationError("Supplier email is not valid.", field="provider_email")
    if not is_valid_phone(item.provider_phone):
        raise EntryValidationError("Supplier phone is not valid.", field="provider_phone")


class ItemsRepository:
    """
    Insert, update, delete and query items.

    Parameters
    ----------
    database : InventoryDatabase
        The open item database.
    """

    def __init__(self, database) -> None:
        self.database = database

    def get_all_items(self) -> List[Item]:
        return self.database.get_all_items()

    def get_item(self, item_id: int) -> Optional[Item]:
        return self.database.get_item(item_id)

    def insert_item(self, item: Item) -> int:
        """Validate and store a new item; returns its id, or -1 if the id is taken."""
        validate_item(item)
        item_id = self.database.insert(item)
        if item_id == -1:
            logger.warning("Item %s already exists; insert ignored", item.id)
            return item_id
        logger.info("Inserted item %s (%r)", item_id, item.name)
        return item_id

    def update_item(self, item: Item) -> None:
        validate_item(item)
        if not self.database.update(item):
            logger.warning("Update of unknown item %s ignored", item.id)
            return
        logger.info("Updated item %s", item.id)

    def delete_item(self, item: Item) -> None:
        if self.database.delete(item):
            logger.info("Deleted item %s", item.id)
