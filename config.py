"""
config.py – Application configuration and constants.

This module defines AppConfig, a central container for:
  - All application-wide constants (database name and passphrase, the
    scratch file names used by the migration, the default item source).
  - The user configuration (currency symbol, Excel column widths, last
    export directory) stored as a JSON file on disk and exposed through a
    simple dict-like interface.
  - OS-appropriate data-directory resolution and logger setup.

No other application module is imported here, so config.py sits at the bottom
of the dependency graph and can be safely imported by any other module.
"""

import copy
import json
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

import appdirs

# ---------------------------------------------------------------------------
# Application-level constants – these never change at runtime.
# ---------------------------------------------------------------------------

APP_NAME = "Inventory"

# Human-readable application version, logged at start-up.
APP_VERSION = "1.0.0"

# Name of the item database file inside the databases/ sub-directory.
DB_NAME = "item_database"

# Fixed passphrase the item database is encrypted with.
DUMMY_PASSWORD = "password"

# Names of the scratch files used while migrating a plaintext database.
DB_TEMP_NAME = "_temp"
DB_BACKUP_NAME = "_backup"

# Default value of Item.source for items entered through the form.
DEFAULT_SOURCE = "manual"

# ---------------------------------------------------------------------------
# Default values written to config.json on first run.
# ---------------------------------------------------------------------------
DEFAULT_CONFIG: dict = {
    # Prefix used when a price is displayed.
    "currency_symbol": "$",
    # Column widths (in characters) for the exported Excel inventory.
    "excel_column_widths": {
        "A": 8, "B": 28, "C": 12, "D": 10,
        "E": 24, "F": 28, "G": 16, "H": 12,
    },
    # Directory chosen the last time a record was exported.
    "last_export_dir": "",
}


class AppConfig:
    """
    Manages application configuration, file paths and logging.

    On instantiation the class:
      1. Resolves the OS-appropriate user-data directory (or uses the one
         passed in).
      2. Derives all relevant file paths from that directory.
      3. Sets up a rotating log handler.
      4. Loads (or creates) the JSON configuration file.

    Parameters
    ----------
    user_data_dir : str, optional
        Directory holding all persistent data.  Defaults to the
        appdirs user-data directory for APP_NAME.

    Attributes
    ----------
    user_data_dir : str
        Absolute path of the directory that stores all persistent data.
    database_dir : str
        Sub-directory holding the item database and its migration scratch
        files.
    db_path : str
        The item database (encrypted SQLite image once migrated).
    db_temp_path : str
        Encrypted copy written during migration.
    db_backup_path : str
        Name the plaintext original is parked under during migration.
    master_key_path : str
        Raw 32-byte master key used for preferences and exported records.
    preferences_path : str
        Encrypted key-value settings store.
    config_path : str
        JSON configuration file.
    log_path : str
        Rotating application log.
    data : dict
        The currently loaded configuration values (mutable at runtime).
    logger : logging.Logger
        Shared Python logger for the whole application.
    """

    def __init__(self, user_data_dir: Optional[str] = None) -> None:
        # --- Resolve (and create) the persistent data directory ---
        self.user_data_dir: str = self._get_user_data_dir(user_data_dir)

        # --- Derive all file paths from the data directory ---
        self.database_dir:     str = os.path.join(self.user_data_dir, "databases")
        self.db_path:          str = os.path.join(self.database_dir, DB_NAME)
        self.db_temp_path:     str = os.path.join(self.database_dir, DB_TEMP_NAME)
        self.db_backup_path:   str = os.path.join(self.database_dir, DB_BACKUP_NAME)
        self.master_key_path:  str = os.path.join(self.user_data_dir, "master.key")
        self.preferences_path: str = os.path.join(self.user_data_dir, "preferences.json")
        self.config_path:      str = os.path.join(self.user_data_dir, "config.json")
        self.log_path:         str = os.path.join(self.user_data_dir, "app.log")

        os.makedirs(self.database_dir, exist_ok=True)

        # --- Configure the rotating log handler ---
        self.logger: logging.Logger = self._setup_logger()

        # --- Load or create the JSON configuration ---
        self.data: dict = self._load()

        self.logger.info("AppConfig initialised; data dir: %s", self.user_data_dir)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _get_user_data_dir(override: Optional[str]) -> str:
        """
        Return (and create if necessary) the directory used for all
        persistent data: *override* when given, otherwise the
        appdirs user-data directory.
        """
        path = override or appdirs.user_data_dir(APP_NAME)
        path = os.path.abspath(path)
        os.makedirs(path, exist_ok=True)
        return path

    def _setup_logger(self) -> logging.Logger:
        """
        Create and configure a rotating file logger for the whole application.

        The log rotates at 2 MB and keeps up to 3 backup files.
        Duplicate handlers are avoided if the logger already exists
        (e.g. when several AppConfig objects are created in one process).
        """
        logger = logging.getLogger(APP_NAME)
        logger.setLevel(logging.DEBUG)

        if not logger.handlers:
            handler = RotatingFileHandler(
                self.log_path,
                maxBytes=2_000_000,
                backupCount=3,
                encoding="utf-8",
            )
            handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)s: %(message)s")
            )
            logger.addHandler(handler)

        return logger

    def _load(self) -> dict:
        """
        Read config.json from disk.

        Missing keys are back-filled from DEFAULT_CONFIG so that new
        settings introduced in later versions are always present.

        Returns the loaded (or default) configuration dictionary.
        """
        try:
            if os.path.exists(self.config_path):
                with open(self.config_path, "r", encoding="utf-8") as fh:
                    cfg: dict = json.load(fh)
                for key, value in DEFAULT_CONFIG.items():
                    cfg.setdefault(key, copy.deepcopy(value))
                return cfg
        except Exception:
            self.logger.exception("Failed to load config; using defaults")

        return copy.deepcopy(DEFAULT_CONFIG)

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def save(self) -> None:
        """Persist the current configuration dictionary to disk as JSON."""
        try:
            with open(self.config_path, "w", encoding="utf-8") as fh:
                json.dump(self.data, fh, indent=2)
            self.logger.info("Config saved")
        except Exception:
            self.logger.exception("Failed to save config")

    def get(self, key: str, default=None):
        """Return a configuration value by key, or *default* if not found."""
        return self.data.get(key, default)

    def set(self, key: str, value) -> None:
        """
        Update a configuration value in memory.

        Call save() afterwards to persist the change to disk.
        """
        self.data[key] = value
