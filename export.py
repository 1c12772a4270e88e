"""
export.py – Encrypted record export.

RecordExporter writes items out of the application in encrypted form:

  - export_item(): one item as a JSON document, encrypted with the
    AES-256-GCM file format from CryptoManager, saved in a directory the
    user picked under the name "<item name> - <provider name>".
  - export_inventory_workbook(): every item as an Excel sheet, built with
    openpyxl in a temporary file and then encrypted the same way.

decrypt_export() and decrypt_export_bytes() read such files back.
"""

import json
import logging
import os
import re
import tempfile
from typing import Any, Dict, List

from openpyxl import Workbook

from models import Item

logger = logging.getLogger("Inventory")

WORKBOOK_HEADER = [
    "ID", "Name", "Price", "Quantity",
    "Provider", "Email", "Phone", "Source",
]

_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def export_file_name(item: Item) -> str:
    """Base file name of an exported record, with unsafe characters replaced."""
    name = f"{item.name} - {item.provider_name}"
    return _UNSAFE_FILENAME_CHARS.sub("_", name).strip() or "item"


def _unique_path(directory: str, name: str) -> str:
    """*directory*/*name*, or *name* (n) when that file already exists."""
    path = os.path.join(directory, name)
    counter = 1
    while os.path.exists(path):
        path = os.path.join(directory, f"{name} ({counter})")
        counter += 1
    return path


class RecordExporter:
    """
    Parameters
    ----------
    config : AppConfig
        Provides the Excel column widths.
    crypto : CryptoManager
        Encrypts and decrypts exported files.
    """

    def __init__(self, config, crypto) -> None:
        self.config = config
        self.crypto = crypto

    def export_item(self, item: Item, directory: str) -> str:
        """
        Encrypt *item* as JSON into a new file in *directory* and return
        the path written.
        """
        if not os.path.isdir(directory):
            raise FileNotFoundError(f"Export directory does not exist: {directory}")
        content = json.dumps(item.to_dict(), ensure_ascii=False).encode("utf-8")
        path = _unique_path(directory, export_file_name(item))
        self.crypto.encrypt_bytes_to_file(content, path)
        logger.info("Exported item %s to %s", item.id, path)
        return path

    def decrypt_export(self, path: str) -> Dict[str, Any]:
        """Return the JSON document stored in an exported record file."""
        return json.loads(self.crypto.decrypt_file(path).decode("utf-8"))

    def decrypt_export_bytes(self, path: str) -> bytes:
        return self.crypto.decrypt_file(path)

    def export_inventory_workbook(self, items: List[Item], out_path: str) -> str:
        """
        Build an Excel sheet of *items* and store it encrypted at *out_path*.

        The workbook is saved to a temporary file first, read back as
        bytes, encrypted, and the temporary file removed.
        """
        wb = Workbook()
        ws = wb.active
        ws.title = "Inventory"
        ws.append(WORKBOOK_HEADER)
        for item in items:
            ws.append([
                item.id, item.name, item.price, item.quantity,
                item.provider_name, item.provider_email, item.provider_phone,
                item.source,
            ])

        widths = self.config.get("excel_column_widths", {})
        for col, width in widths.items():
            ws.column_dimensions[col].width = int(width)

        tmp = tempfile.NamedTemporaryFile(delete=False, suffix=".xlsx")
        tmp_path = tmp.name
        tmp.close()
        try:
            wb.save(tmp_path)
            with open(tmp_path, "rb") as fh:
                xlsx_bytes = fh.read()
            self.crypto.encrypt_bytes_to_file(xlsx_bytes, out_path)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

        logger.info("Exported %d items to %s", len(items), out_path)
        return out_path
