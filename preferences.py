"""
preferences.py – Encrypted key-value settings store.

EncryptedPreferences keeps a flat set of string and boolean values in a JSON
file in which both names and values are encrypted:

  - names with AES-SIV, which is deterministic, so a name always maps to
    the same stored entry;
  - values with AES-256-GCM under a random nonce, with the plain name as
    associated data so an encrypted value cannot be moved to another name.

Both keys are derived from the master key held by CryptoManager.  Every
put_*() call is written to disk immediately; the last write wins.
"""

import base64
import json
import logging
import os
from typing import Any, Dict, Optional

from crypto import INFO_PREF_KEYS, INFO_PREF_VALUES

logger = logging.getLogger("Inventory")

# ---------------------------------------------------------------------------
# Settings keys
# ---------------------------------------------------------------------------
PROVIDER_DEFAULT = "ProviderDefault"
EMAIL_DEFAULT = "EmailDefault"
PHONE_DEFAULT = "PhoneDefault"
FILL_DEFAULT = "FillDefault"
HIDE_SENSITIVE = "Hide"
FORBID_SHARE = "Forbid"

FILE_VERSION = 1


class EncryptedPreferences:
    """
    Parameters
    ----------
    config : AppConfig
        Provides preferences_path.
    crypto : CryptoManager
        Provides the master key and the AES-SIV / AES-GCM primitives.
    """

    def __init__(self, config, crypto) -> None:
        self.path: str = config.preferences_path
        self.crypto = crypto
        self._name_key = crypto.derive_subkey(INFO_PREF_KEYS, length=64)
        self._value_key = crypto.derive_subkey(INFO_PREF_VALUES)
        self._values: Dict[str, Any] = self._load()

    # ------------------------------------------------------------------
    # File I/O
    # ------------------------------------------------------------------

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as fh:
            payload = json.load(fh)

        values: Dict[str, Any] = {}
        for enc_name, enc_value in payload.get("entries", {}).items():
            name = self.crypto.siv_decrypt(
                self._name_key, base64.b64decode(enc_name)
            ).decode("utf-8")
            raw = self.crypto.gcm_decrypt(
                self._value_key, base64.b64decode(enc_value), name.encode("utf-8")
            )
            values[name] = json.loads(raw)
        return values

    def _save(self) -> None:
        entries = {}
        for name, value in self._values.items():
            enc_name = self.crypto.siv_encrypt(self._name_key, name.encode("utf-8"))
            enc_value = self.crypto.gcm_encrypt(
                self._value_key,
                json.dumps(value).encode("utf-8"),
                name.encode("utf-8"),
            )
            entries[base64.b64encode(enc_name).decode("ascii")] = (
                base64.b64encode(enc_value).decode("ascii")
            )

        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump({"version": FILE_VERSION, "entries": entries}, fh, indent=2)
        os.replace(tmp, self.path)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def _get(self, key: str, default: Any, expected: type) -> Any:
        if key not in self._values:
            return default
        value = self._values[key]
        if type(value) is not expected:
            raise TypeError(
                f"Preference {key!r} holds {type(value).__name__}, not {expected.__name__}"
            )
        return value

    def get_string(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._get(key, default, str)

    def get_boolean(self, key: str, default: bool = False) -> bool:
        return self._get(key, default, bool)

    def contains(self, key: str) -> bool:
        return key in self._values

    def get_all(self) -> Dict[str, Any]:
        return dict(self._values)

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def put_string(self, key: str, value: str) -> None:
        self._values[key] = str(value)
        self._save()
        logger.debug("Preference %s updated", key)

    def put_boolean(self, key: str, value: bool) -> None:
        self._values[key] = bool(value)
        self._save()
        logger.debug("Preference %s set to %s", key, bool(value))

    def remove(self, key: str) -> None:
        if self._values.pop(key, None) is not None:
            self._save()
