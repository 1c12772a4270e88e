"""
ui.py – Main application window.

This module contains AppWindow, which is the top-level class that owns
the Tkinter root window and wires all subsystems together.

Responsibilities:
  - Create AppConfig, CryptoManager, the item database, ItemsRepository,
    EncryptedPreferences and RecordExporter in the correct dependency order.
  - Show the item list and hand every action to the screen models in
    viewmodels.py.
  - Open the item entry/edit form, the item details window and the
    settings window as Toplevel dialogs.

The windows hold no logic of their own: whether a form may be saved,
whether sharing is allowed and what the details screen shows all come from
the screen models.
"""

import logging
import os
from tkinter import (
    BooleanVar, StringVar, Tk, Toplevel, filedialog, messagebox, ttk,
)
from typing import Callable

from config import AppConfig, APP_VERSION
from crypto import CryptoManager
from database import get_database
from export import RecordExporter
from models import ItemDetails, format_price
from preferences import EncryptedPreferences
from storage import ItemsRepository
from viewmodels import (
    HomeModel, ItemDetailsModel, ItemEditModel, ItemEntryModel, SettingsModel,
)

logger = logging.getLogger("Inventory")

# ---------------------------------------------------------------------------
# Visual constants
# ---------------------------------------------------------------------------
APP_FONT    = ("Segoe UI", 10)
HEADER_FONT = ("Segoe UI", 13, "bold")
BG          = "#f0f2f5"

FORM_FIELDS = (
    ("name", "Item name*"),
    ("price", "Item price*"),
    ("quantity", "Quantity in stock*"),
    ("provider_name", "Provider name"),
    ("provider_email", "Provider email"),
    ("provider_phone", "Provider phone"),
)


class AppWindow:
    """
    The main application window: the item list plus the toolbar.

    Call run() to enter the Tkinter event loop.
    """

    def __init__(self) -> None:
        # Subsystems in dependency order.
        self.config      = AppConfig()
        self.crypto      = CryptoManager(self.config)
        self.database    = get_database(self.config, self.crypto)
        self.repository  = ItemsRepository(self.database)
        self.preferences = EncryptedPreferences(self.config, self.crypto)
        self.exporter    = RecordExporter(self.config, self.crypto)
        self.home        = HomeModel(self.repository)

        self.root = Tk()
        self.root.title("Inventory")
        self.root.geometry("820x520")
        self.root.configure(bg=BG)
        self._setup_styles()

        self._build_header()
        self._build_item_list()
        self.refresh()

        self.root.protocol("WM_DELETE_WINDOW", self._on_closing)

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def _setup_styles(self) -> None:
        style = ttk.Style()
        try:
            style.theme_use("clam")
        except Exception:
            pass
        style.configure("TFrame", background=BG)
        style.configure("App.TLabel", font=APP_FONT, background=BG)
        style.configure("Header.TLabel", font=HEADER_FONT, background=BG)
        style.configure("App.TButton", font=APP_FONT, padding=(8, 5))

    def _build_header(self) -> None:
        hf = ttk.Frame(self.root, padding=(10, 8))
        hf.pack(fill="x")
        ttk.Label(hf, text="Inventory", style="Header.TLabel").pack(side="left")
        for text, command in (
            ("Settings", self._open_settings),
            ("Export all", self._export_workbook),
            ("Add item", self._open_entry),
        ):
            ttk.Button(hf, text=text, style="App.TButton", command=command).pack(
                side="right", padx=(6, 0)
            )

    def _build_item_list(self) -> None:
        columns = ("name", "price", "quantity")
        self.tree = ttk.Treeview(self.root, columns=columns, show="headings")
        self.tree.heading("name", text="Name")
        self.tree.heading("price", text="Price")
        self.tree.heading("quantity", text="In stock")
        self.tree.column("price", anchor="e", width=120)
        self.tree.column("quantity", anchor="e", width=90)
        self.tree.pack(fill="both", expand=True, padx=10, pady=(0, 10))
        self.tree.bind("<Double-1>", self._on_item_activated)
        self.tree.bind("<Return>", self._on_item_activated)

        self.empty_label = ttk.Label(
            self.root, text='No items in inventory. Click "Add item" to add one.',
            style="App.TLabel",
        )

    def refresh(self) -> None:
        """Reload the item list from the repository."""
        self.tree.delete(*self.tree.get_children())
        items = self.home.items()
        symbol = self.config.get("currency_symbol", "$")
        for item in items:
            self.tree.insert(
                "", "end", iid=str(item.id),
                values=(item.name, format_price(item.price, symbol), item.quantity),
            )
        if items:
            self.empty_label.pack_forget()
        else:
            self.empty_label.pack(pady=(0, 10))

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _on_item_activated(self, _event=None) -> None:
        selection = self.tree.selection()
        if selection:
            self._open_details(int(selection[0]))

    def _open_entry(self) -> None:
        model = ItemEntryModel(self.repository, self.preferences)
        ItemFormDialog(
            self.root, "Add item", model.item_ui_state.item_details,
            on_change=model.update_ui_state,
            is_valid=lambda: model.item_ui_state.is_entry_valid,
            on_save=model.save_item,
            on_done=self.refresh,
        )

    def open_edit(self, item_id: int, on_done: Callable[[], None]) -> None:
        model = ItemEditModel(self.repository, item_id)
        ItemFormDialog(
            self.root, "Edit item", model.item_ui_state.item_details,
            on_change=model.update_ui_state,
            is_valid=lambda: model.item_ui_state.is_entry_valid,
            on_save=model.update_item,
            on_done=on_done,
        )

    def _open_details(self, item_id: int) -> None:
        model = ItemDetailsModel(
            self.repository, self.preferences, self.exporter, item_id,
            currency_symbol=self.config.get("currency_symbol", "$"),
        )
        ItemDetailsWindow(self, model)

    def _open_settings(self) -> None:
        SettingsWindow(self.root, SettingsModel(self.preferences))

    def _export_workbook(self) -> None:
        path = filedialog.asksaveasfilename(
            parent=self.root, title="Export inventory",
            defaultextension=".xlsx.enc",
            filetypes=[("Encrypted workbook", "*.xlsx.enc")],
        )
        if not path:
            return
        try:
            self.exporter.export_inventory_workbook(self.home.items(), path)
        except Exception:
            logger.exception("Workbook export failed")
            messagebox.showerror("Export failed", "Could not export the inventory.")
            return
        messagebox.showinfo("Exported", f"Inventory exported to\n{path}")

    def _on_closing(self) -> None:
        self.database.close()
        self.root.destroy()

    def run(self) -> None:
        logger.info("Inventory %s started", APP_VERSION)
        self.root.mainloop()


class ItemFormDialog:
    """Entry/edit form; the save button follows the model's is_entry_valid."""

    def __init__(self, master, title: str, details: ItemDetails, *,
                 on_change: Callable[[ItemDetails], None],
                 is_valid: Callable[[], bool],
                 on_save: Callable[[], object],
                 on_done: Callable[[], None]) -> None:
        self._details = details
        self._on_change = on_change
        self._is_valid = is_valid
        self._on_save = on_save
        self._on_done = on_done

        self.top = Toplevel(master)
        self.top.title(title)
        self.top.configure(bg=BG)
        frame = ttk.Frame(self.top, padding=12)
        frame.pack(fill="both", expand=True)
        frame.columnconfigure(1, weight=1)

        self._vars = {}
        for row, (attr, label) in enumerate(FORM_FIELDS):
            ttk.Label(frame, text=label, style="App.TLabel").grid(
                row=row, column=0, sticky="w", pady=4, padx=(0, 8)
            )
            var = StringVar(value=getattr(details, attr))
            var.trace_add("write", self._on_field_change)
            ttk.Entry(frame, textvariable=var, width=36).grid(
                row=row, column=1, sticky="we", pady=4
            )
            self._vars[attr] = var

        ttk.Label(frame, text="*required fields", style="App.TLabel").grid(
            row=len(FORM_FIELDS), column=0, columnspan=2, sticky="w", pady=(6, 0)
        )
        self.save_button = ttk.Button(
            frame, text="Save", style="App.TButton", command=self._save
        )
        self.save_button.grid(row=len(FORM_FIELDS) + 1, column=0, columnspan=2,
                              sticky="we", pady=(10, 0))
        self._on_field_change()

    def _on_field_change(self, *_args) -> None:
        values = {attr: var.get() for attr, var in self._vars.items()}
        self._details = ItemDetails(id=self._details.id, source=self._details.source, **values)
        self._on_change(self._details)
        self.save_button.state(["!disabled"] if self._is_valid() else ["disabled"])

    def _save(self) -> None:
        if not self._is_valid():
            return
        try:
            self._on_save()
        except Exception:
            logger.exception("Saving item failed")
            messagebox.showerror("Save failed", "The item could not be saved.", parent=self.top)
            return
        self.top.destroy()
        self._on_done()


class ItemDetailsWindow:
    """Shows one item with Sell, Edit, Delete, Share and Export."""

    def __init__(self, app: AppWindow, model: ItemDetailsModel) -> None:
        self.app = app
        self.model = model

        self.top = Toplevel(app.root)
        self.top.title("Item details")
        self.top.configure(bg=BG)
        self.body = ttk.Frame(self.top, padding=12)
        self.body.pack(fill="both", expand=True)
        self.body.columnconfigure(1, weight=1)

        self._value_labels = []
        for row, (label, _value) in enumerate(model.display_fields()):
            ttk.Label(self.body, text=label, style="App.TLabel").grid(
                row=row, column=0, sticky="w", pady=3, padx=(0, 16)
            )
            value_label = ttk.Label(self.body, style="App.TLabel")
            value_label.grid(row=row, column=1, sticky="e", pady=3)
            self._value_labels.append(value_label)

        buttons = ttk.Frame(self.top, padding=(12, 0, 12, 12))
        buttons.pack(fill="x")
        self.sell_button = ttk.Button(buttons, text="Sell", command=self._sell)
        self.share_button = ttk.Button(buttons, text="Share", command=self._share)
        for column, button in enumerate((
            self.sell_button,
            ttk.Button(buttons, text="Edit", command=self._edit),
            ttk.Button(buttons, text="Delete", command=self._delete),
            self.share_button,
            ttk.Button(buttons, text="Export", command=self._export),
        )):
            buttons.columnconfigure(column, weight=1)
            button.grid(row=0, column=column, sticky="we", padx=2)

        self._render()

    def _render(self) -> None:
        for value_label, (_label, value) in zip(self._value_labels, self.model.display_fields()):
            value_label.configure(text=value)
        self.sell_button.state(["disabled"] if self.model.ui_state.out_of_stock else ["!disabled"])
        self.share_button.state(["!disabled"] if self.model.can_share else ["disabled"])

    def _reload(self) -> None:
        self.model.refresh()
        self._render()
        self.app.refresh()

    def _sell(self) -> None:
        self.model.reduce_quantity_by_one()
        self._render()
        self.app.refresh()

    def _edit(self) -> None:
        self.app.open_edit(self.model.item_id, on_done=self._reload)

    def _delete(self) -> None:
        if not messagebox.askyesno("Attention", "Are you sure you want to delete?", parent=self.top):
            return
        self.model.delete_item()
        self.top.destroy()
        self.app.refresh()

    def _share(self) -> None:
        if not self.model.can_share:
            return
        self.top.clipboard_clear()
        self.top.clipboard_append(self.model.share_text())
        messagebox.showinfo("Share", "Item details copied to the clipboard.", parent=self.top)

    def _export(self) -> None:
        config = self.app.config
        directory = filedialog.askdirectory(
            parent=self.top, title="Export item",
            initialdir=config.get("last_export_dir") or os.path.expanduser("~"),
        )
        if not directory:
            return
        try:
            path = self.model.export_to(directory)
        except Exception:
            logger.exception("Export of item %s failed", self.model.item_id)
            messagebox.showerror("Export failed", "Could not export the item.", parent=self.top)
            return
        config.set("last_export_dir", directory)
        config.save()
        messagebox.showinfo("Exported", f"Item exported to\n{path}", parent=self.top)


class SettingsWindow:
    """Supplier defaults and the three toggles; every change is saved at once."""

    def __init__(self, master, model: SettingsModel) -> None:
        self.model = model
        self.top = Toplevel(master)
        self.top.title("Settings")
        self.top.configure(bg=BG)
        frame = ttk.Frame(self.top, padding=12)
        frame.pack(fill="both", expand=True)
        frame.columnconfigure(1, weight=1)

        row = 0
        for attr, label in (
            ("provider_default", "Default provider name"),
            ("email_default", "Default provider email"),
            ("phone_default", "Default provider phone"),
        ):
            ttk.Label(frame, text=label, style="App.TLabel").grid(
                row=row, column=0, sticky="w", pady=4, padx=(0, 8)
            )
            var = StringVar(value=getattr(model, attr))
            var.trace_add("write", self._setter(attr, var))
            ttk.Entry(frame, textvariable=var, width=32).grid(row=row, column=1, sticky="we")
            row += 1

        for attr, label in (
            ("fill_default", "Fill new items with default provider"),
            ("hide_sensitive", "Hide sensitive data"),
            ("forbid_share", "Forbid sharing"),
        ):
            var = BooleanVar(value=getattr(model, attr))
            ttk.Checkbutton(
                frame, text=label, variable=var, command=self._setter(attr, var)
            ).grid(row=row, column=0, columnspan=2, sticky="w", pady=3)
            row += 1

    def _setter(self, attr: str, var) -> Callable[..., None]:
        def _apply(*_args) -> None:
            setattr(self.model, attr, var.get())
        return _apply
