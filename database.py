"""
database.py – Encrypted item database.

The items live in an SQLite database that is only ever decrypted in memory.
On disk the file holds:

  b"INVDB\\x01" | PBKDF2 salt (16 bytes) | Fernet token of the SQLite image

Every write commits and re-encrypts the whole image, replacing the file
atomically, so the plaintext never touches the disk.

A database file left over from a build that stored the items unencrypted is
detected on open and converted in place by migrate_to_encrypted():

  1. encrypt-copy the plaintext file to _temp
  2. rename the original to _backup
  3. rename _temp to the original name
  4. delete _backup

A failed rename raises OSError; only the second rename puts the backup back
under the original name before raising.
"""

import logging
import os
import sqlite3
import threading
from enum import Enum
from typing import Dict, List, Optional

from config import DUMMY_PASSWORD
from crypto import SALT_SIZE
from models import Item

logger = logging.getLogger("Inventory")

SQLITE_HEADER = b"SQLite format 3\x00"
DB_MAGIC = b"INVDB\x01"

SCHEMA = """
CREATE TABLE IF NOT EXISTS items (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    name           TEXT    NOT NULL,
    price          REAL    NOT NULL,
    quantity       INTEGER NOT NULL,
    provider_name  TEXT    NOT NULL DEFAULT '',
    provider_email TEXT    NOT NULL DEFAULT '',
    provider_phone TEXT    NOT NULL DEFAULT '',
    source         TEXT    NOT NULL DEFAULT 'manual'
)
"""

ITEM_COLUMNS = (
    "name", "price", "quantity",
    "provider_name", "provider_email", "provider_phone", "source",
)


class DatabaseState(Enum):
    DOES_NOT_EXIST = "does_not_exist"
    UNENCRYPTED = "unencrypted"
    ENCRYPTED = "encrypted"


def get_database_state(db_path: str) -> DatabaseState:
    """
    Classify the file at *db_path*: missing or empty, a plain SQLite
    database (recognised by its header), or anything else, which is
    assumed to be encrypted.
    """
    if not os.path.exists(db_path) or os.path.getsize(db_path) == 0:
        return DatabaseState.DOES_NOT_EXIST
    with open(db_path, "rb") as fh:
        header = fh.read(len(SQLITE_HEADER))
    if header == SQLITE_HEADER:
        return DatabaseState.UNENCRYPTED
    return DatabaseState.ENCRYPTED


def _seal(crypto, image: bytes, passphrase: str, salt: bytes) -> bytes:
    fernet = crypto.passphrase_fernet(passphrase, salt)
    return DB_MAGIC + salt + fernet.encrypt(image)


def _unseal(crypto, blob: bytes, passphrase: str):
    """Return (salt, image) for an encrypted database blob."""
    if not blob.startswith(DB_MAGIC) or len(blob) < len(DB_MAGIC) + SALT_SIZE:
        raise ValueError("Database file is not in the encrypted format")
    salt = blob[len(DB_MAGIC):len(DB_MAGIC) + SALT_SIZE]
    token = blob[len(DB_MAGIC) + SALT_SIZE:]
    # Raises cryptography.fernet.InvalidToken on a wrong passphrase.
    image = crypto.passphrase_fernet(passphrase, salt).decrypt(token)
    return salt, image


def encrypt_to(crypto, src_path: str, dst_path: str, passphrase: str) -> None:
    """Write an encrypted copy of the plaintext database *src_path* to *dst_path*."""
    conn = sqlite3.connect(src_path)
    try:
        image = conn.serialize()
    finally:
        conn.close()
    with open(dst_path, "wb") as fh:
        fh.write(_seal(crypto, image, passphrase, os.urandom(SALT_SIZE)))


def migrate_to_encrypted(config, crypto, passphrase: str = DUMMY_PASSWORD) -> None:
    """Convert the plaintext database at config.db_path into the encrypted format."""
    db_file = config.db_path
    db_temp = config.db_temp_path
    db_backup = config.db_backup_path

    logger.info("Encrypting plaintext database %s", db_file)

    if os.path.exists(db_temp):
        os.remove(db_temp)

    encrypt_to(crypto, db_file, db_temp, passphrase)

    try:
        os.rename(db_file, db_backup)
    except OSError as exc:
        if os.path.exists(db_temp):
            os.remove(db_temp)
        raise OSError(f"Could not rename {db_file} to {db_backup}") from exc

    try:
        os.rename(db_temp, db_file)
    except OSError as exc:
        os.rename(db_backup, db_file)
        raise OSError(f"Could not rename {db_temp} to {db_file}") from exc

    os.remove(db_backup)
    logger.info("Database %s is now encrypted", db_file)


def restore_interrupted_migration(config) -> bool:
    """
    Tidy up after a migration that stopped part way.

    If it stopped after parking the original under _backup, the backup is
    moved back so this open migrates it again.  If it stopped after the
    encrypted copy was already in place, the plaintext _backup and any
    _temp are deleted.

    Returns True when a backup was restored.
    """
    if not os.path.exists(config.db_path):
        if not os.path.exists(config.db_backup_path):
            return False
        logger.warning("Restoring %s left by an interrupted migration", config.db_backup_path)
        os.rename(config.db_backup_path, config.db_path)
        return True

    if get_database_state(config.db_path) is DatabaseState.ENCRYPTED:
        for leftover in (config.db_backup_path, config.db_temp_path):
            if os.path.exists(leftover):
                logger.warning("Removing %s left by an interrupted migration", leftover)
                os.remove(leftover)
    return False


class InventoryDatabase:
    """
    The item table, decrypted into an in-memory SQLite connection.

    Parameters
    ----------
    config : AppConfig
        Provides the database file paths.
    crypto : CryptoManager
        Provides the passphrase-derived Fernet keys.
    password : str
        Passphrase the database is encrypted with.
    """

    def __init__(self, config, crypto, password: str = DUMMY_PASSWORD) -> None:
        self.config = config
        self.crypto = crypto
        self.path: str = config.db_path
        self._password = password

        restore_interrupted_migration(config)
        if get_database_state(self.path) is DatabaseState.UNENCRYPTED:
            migrate_to_encrypted(config, crypto, password)

        self._conn: Optional[sqlite3.Connection] = None
        self._salt: bytes = b""
        self._open()

    # ------------------------------------------------------------------
    # Opening and persisting
    # ------------------------------------------------------------------

    def _open(self) -> None:
        conn = sqlite3.connect(":memory:")
        state = get_database_state(self.path)
        if state is DatabaseState.ENCRYPTED:
            with open(self.path, "rb") as fh:
                self._salt, image = _unseal(self.crypto, fh.read(), self._password)
            conn.deserialize(image)
            logger.debug("Opened encrypted database %s", self.path)
        else:
            self._salt = os.urandom(SALT_SIZE)
            logger.info("Creating new encrypted database %s", self.path)

        conn.row_factory = sqlite3.Row
        conn.execute(SCHEMA)
        conn.commit()
        self._conn = conn

        if state is DatabaseState.DOES_NOT_EXIST:
            self._flush()

    def _flush(self) -> None:
        """Encrypt the current image and atomically replace the file on disk."""
        tmp = self.path + ".tmp"
        try:
            blob = _seal(self.crypto, self.conn.serialize(), self._password, self._salt)
            with open(tmp, "wb") as fh:
                fh.write(blob)
            os.replace(tmp, self.path)
        except Exception:
            # The committed in-memory image is now ahead of the file on disk.
            logger.exception("Failed to write encrypted database %s", self.path)
            raise

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Database is closed")
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        with _instances_lock:
            if _instances.get(self.path) is self:
                del _instances[self.path]

    def __enter__(self) -> "InventoryDatabase":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Item DAO
    # ------------------------------------------------------------------

    def insert(self, item: Item) -> int:
        """
        Insert *item* and return its new id.

        An item whose id already exists is ignored and -1 is returned; any
        other constraint failure raises sqlite3.IntegrityError.
        """
        if item.id and self.get_item(item.id) is not None:
            return -1
        values = [getattr(item, col) for col in ITEM_COLUMNS]
        try:
            cur = self.conn.execute(
                f"INSERT INTO items (id, {', '.join(ITEM_COLUMNS)}) "
                f"VALUES (?, {', '.join('?' for _ in ITEM_COLUMNS)})",
                [item.id or None, *values],
            )
        except sqlite3.Error:
            self.conn.rollback()
            raise
        self.conn.commit()
        self._flush()
        return cur.lastrowid

    def update(self, item: Item) -> int:
        """Overwrite the stored row with *item*'s fields; returns rows changed."""
        assignments = ", ".join(f"{col} = ?" for col in ITEM_COLUMNS)
        values = [getattr(item, col) for col in ITEM_COLUMNS]
        cur = self.conn.execute(
            f"UPDATE items SET {assignments} WHERE id = ?", [*values, item.id]
        )
        self.conn.commit()
        if cur.rowcount:
            self._flush()
        return cur.rowcount

    def delete(self, item: Item) -> int:
        cur = self.conn.execute("DELETE FROM items WHERE id = ?", (item.id,))
        self.conn.commit()
        if cur.rowcount:
            self._flush()
        return cur.rowcount

    def get_item(self, item_id: int) -> Optional[Item]:
        row = self.conn.execute("SELECT * FROM items WHERE id = ?", (item_id,)).fetchone()
        return _row_to_item(row) if row is not None else None

    def get_all_items(self) -> List[Item]:
        rows = self.conn.execute("SELECT * FROM items ORDER BY name ASC").fetchall()
        return [_row_to_item(row) for row in rows]


def _row_to_item(row: sqlite3.Row) -> Item:
    return Item(
        id=row["id"],
        name=row["name"],
        price=row["price"],
        quantity=row["quantity"],
        provider_name=row["provider_name"],
        provider_email=row["provider_email"],
        provider_phone=row["provider_phone"],
        source=row["source"],
    )


# ---------------------------------------------------------------------------
# Process-wide instances, one per database file.
# ---------------------------------------------------------------------------
_instances: Dict[str, InventoryDatabase] = {}
_instances_lock = threading.Lock()


def get_database(config, crypto, password: str = DUMMY_PASSWORD) -> InventoryDatabase:
    """Return the open database for config.db_path, opening it on first use."""
    with _instances_lock:
        instance = _instances.get(config.db_path)
        if instance is None:
            instance = InventoryDatabase(config, crypto, password)
            _instances[config.db_path] = instance
        return instance
