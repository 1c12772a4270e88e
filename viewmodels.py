"""
viewmodels.py – State holders for the application screens.

Each screen of AppWindow owns one of these objects.  They keep what the
screen shows, validate form input and forward changes to ItemsRepository or
EncryptedPreferences.  Form validation never raises: an invalid form simply
reports is_entry_valid = False and the save button stays disabled.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

import preferences as prefs
from models import Item, ItemDetails, format_price, mask, share_text
from storage import is_valid_email, is_valid_phone

logger = logging.getLogger("Inventory")


@dataclass
class ItemUiState:
    item_details: ItemDetails = field(default_factory=ItemDetails)
    is_entry_valid: bool = False


@dataclass
class ItemDetailsUiState:
    out_of_stock: bool = True
    item_details: ItemDetails = field(default_factory=ItemDetails)


def validate_input(details: ItemDetails) -> bool:
    """
    True when the form may be saved: name, price and quantity filled in,
    a finite price, neither number negative, and the optional supplier
    email and phone well formed.
    """
    if not (details.name.strip() and details.price.strip() and details.quantity.strip()):
        return False
    item = details.to_item()
    if not math.isfinite(item.price) or item.price < 0 or item.quantity < 0:
        return False
    return is_valid_email(details.provider_email) and is_valid_phone(details.provider_phone)


class HomeModel:
    def __init__(self, repository) -> None:
        self.repository = repository

    def items(self) -> List[Item]:
        return self.repository.get_all_items()


class ItemEntryModel:
    """
    State of the "add item" form.

    When the FillDefault setting is on, the supplier fields start out with
    the defaults stored in the settings.
    """

    def __init__(self, repository, preferences) -> None:
        self.repository = repository
        details = ItemDetails()
        if preferences.get_boolean(prefs.FILL_DEFAULT, False):
            details = ItemDetails(
                provider_name=preferences.get_string(prefs.PROVIDER_DEFAULT, "") or "",
                provider_email=preferences.get_string(prefs.EMAIL_DEFAULT, "") or "",
                provider_phone=preferences.get_string(prefs.PHONE_DEFAULT, "") or "",
            )
        self.item_ui_state = ItemUiState(item_details=details)

    def update_ui_state(self, item_details: ItemDetails) -> None:
        self.item_ui_state = ItemUiState(
            item_details=item_details,
            is_entry_valid=validate_input(item_details),
        )

    def save_item(self) -> Optional[int]:
        """Insert the form's item if it is valid; returns the new id or None."""
        if not validate_input(self.item_ui_state.item_details):
            return None
        return self.repository.insert_item(self.item_ui_state.item_details.to_item())


class ItemEditModel:
    def __init__(self, repository, item_id: int) -> None:
        self.repository = repository
        item = repository.get_item(item_id)
        if item is None:
            raise ValueError(f"Item {item_id} not found")
        self.item_ui_state = ItemUiState(item_details=item.to_details(), is_entry_valid=True)

    def update_ui_state(self, item_details: ItemDetails) -> None:
        self.item_ui_state = ItemUiState(
            item_details=item_details,
            is_entry_valid=validate_input(item_details),
        )

    def update_item(self) -> bool:
        if not validate_input(self.item_ui_state.item_details):
            return False
        self.repository.update_item(self.item_ui_state.item_details.to_item())
        return True


class ItemDetailsModel:
    """
    State of the item details screen: sell, delete, share and export.

    Parameters
    ----------
    repository : ItemsRepository
    preferences : EncryptedPreferences
        Read for the Hide and Forbid settings each time they are needed,
        so a change on the settings screen applies immediately.
    exporter : RecordExporter
    item_id : int
    currency_symbol : str
        Prefix used by display_fields() for the price.
    """

    def __init__(self, repository, preferences, exporter, item_id: int,
                 currency_symbol: str = "$") -> None:
        self.repository = repository
        self.preferences = preferences
        self.exporter = exporter
        self.item_id = item_id
        self.currency_symbol = currency_symbol
        self.ui_state = ItemDetailsUiState()
        self.refresh()

    def refresh(self) -> None:
        item = self.repository.get_item(self.item_id)
        if item is None:
            raise ValueError(f"Item {self.item_id} not found")
        self.ui_state = ItemDetailsUiState(
            out_of_stock=item.quantity <= 0,
            item_details=item.to_details(),
        )

    @property
    def item(self) -> Item:
        return self.ui_state.item_details.to_item()

    @property
    def hide_sensitive(self) -> bool:
        return self.preferences.get_boolean(prefs.HIDE_SENSITIVE, False)

    @property
    def can_share(self) -> bool:
        return not self.preferences.get_boolean(prefs.FORBID_SHARE, False)

    def reduce_quantity_by_one(self) -> None:
        """Sell one unit. Nothing happens when the item is out of stock."""
        item = self.item
        if item.quantity > 0:
            self.repository.update_item(replace(item, quantity=item.quantity - 1))
        self.refresh()

    def delete_item(self) -> None:
        self.repository.delete_item(self.item)

    def display_fields(self) -> List[Tuple[str, str]]:
        """Label/value pairs shown on the screen, supplier fields masked when Hide is on."""
        item = self.item
        hide = self.hide_sensitive

        def sensitive(value: str) -> str:
            return mask(value) if hide else value

        return [
            ("Item", item.name),
            ("Quantity in stock", str(item.quantity)),
            ("Price", format_price(item.price, self.currency_symbol)),
            ("Provider name", sensitive(item.provider_name)),
            ("Provider email", sensitive(item.provider_email)),
            ("Provider phone", sensitive(item.provider_phone)),
            ("Source", item.source),
        ]

    def share_text(self) -> str:
        if not self.can_share:
            raise PermissionError("Sharing is disabled in settings")
        return share_text(self.item)

    def export_to(self, directory: str) -> str:
        return self.exporter.export_item(self.item, directory)


class SettingsModel:
    """Supplier defaults and display toggles, saved on every change."""

    def __init__(self, preferences) -> None:
        self.preferences = preferences

    def _string(self, key: str) -> str:
        return self.preferences.get_string(key, "") or ""

    @property
    def provider_default(self) -> str:
        return self._string(prefs.PROVIDER_DEFAULT)

    @provider_default.setter
    def provider_default(self, value: str) -> None:
        self.preferences.put_string(prefs.PROVIDER_DEFAULT, value)

    @property
    def email_default(self) -> str:
        return self._string(prefs.EMAIL_DEFAULT)

    @email_default.setter
    def email_default(self, value: str) -> None:
        self.preferences.put_string(prefs.EMAIL_DEFAULT, value)

    @property
    def phone_default(self) -> str:
        return self._string(prefs.PHONE_DEFAULT)

    @phone_default.setter
    def phone_default(self, value: str) -> None:
        self.preferences.put_string(prefs.PHONE_DEFAULT, value)

    @property
    def fill_default(self) -> bool:
        return self.preferences.get_boolean(prefs.FILL_DEFAULT, False)

    @fill_default.setter
    def fill_default(self, value: bool) -> None:
        self.preferences.put_boolean(prefs.FILL_DEFAULT, value)

    @property
    def hide_sensitive(self) -> bool:
        return self.preferences.get_boolean(prefs.HIDE_SENSITIVE, False)

    @hide_sensitive.setter
    def hide_sensitive(self, value: bool) -> None:
        self.preferences.put_boolean(prefs.HIDE_SENSITIVE, value)

    @property
    def forbid_share(self) -> bool:
        return self.preferences.get_boolean(prefs.FORBID_SHARE, False)

    @forbid_share.setter
    def forbid_share(self, value: bool) -> None:
        self.preferences.put_boolean(prefs.FORBID_SHARE, value)
