"""
main.py – Application entry point.

This file is intentionally minimal.  All logic lives in specialised modules:

  config.py      – AppConfig           : constants, file paths, config I/O, logging
  crypto.py      – CryptoManager       : master key, PBKDF2/HKDF keys, Fernet and
                                         AES-GCM/AES-SIV encryption
  database.py    – InventoryDatabase   : encrypted SQLite item table, migration of
                                         plaintext databases
  storage.py     – ItemsRepository     : item validation and persistence
  preferences.py – EncryptedPreferences: encrypted settings store
  export.py      – RecordExporter      : encrypted record and workbook export
  viewmodels.py  – screen models       : form validation, sell, share, masking
  ui.py          – AppWindow           : Tkinter windows

To run the application:
    python main.py
"""

from ui import AppWindow


def main() -> None:
    """Create the application window and start the event loop."""
    app = AppWindow()
    app.run()


if __name__ == "__main__":
    main()
