"""
crypto.py – Cryptographic operations for the Inventory application.

This module contains CryptoManager, which is the single place responsible
for every cryptographic concern in the application:

  - Creating and loading the master key (a random 256-bit key kept in the
    user-data directory; it stands in for a device-backed key store).
  - Key derivation from the database passphrase using PBKDF2-HMAC-SHA256,
    and encrypting/decrypting the database image with Fernet
    (AES-128-CBC + HMAC-SHA256).
  - Sub-key derivation from the master key with HKDF-SHA256.
  - AES-256-GCM and AES-SIV primitives used by the encrypted preference
    store.
  - The self-describing AES-256-GCM file format used for exported records.

All primitives come from the 'cryptography' package.
"""

import base64
import logging
import os
from typing import Dict, Optional, Tuple

from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, AESSIV
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger("Inventory")

# PBKDF2 work factor for the database passphrase.
PBKDF2_ITERATIONS = 390_000

# Size of the random salts written in front of encrypted blobs.
SALT_SIZE = 16

# AES-GCM nonce size (96 bits, as recommended for GCM).
NONCE_SIZE = 12

# Header of an exported (encrypted) file: magic + format version.
EXPORT_MAGIC = b"INVX"
EXPORT_VERSION = 1
EXPORT_HEADER_SIZE = len(EXPORT_MAGIC) + 1 + SALT_SIZE + NONCE_SIZE

# HKDF "info" labels, one per purpose, so sub-keys never collide.
INFO_PREF_KEYS = b"inventory/preferences/keys"
INFO_PREF_VALUES = b"inventory/preferences/values"
INFO_EXPORT = b"inventory/export"


class CryptoManager:
    """
    Handles all cryptographic operations for the Inventory application.

    Parameters
    ----------
    config : AppConfig
        Application configuration object used for file paths.

    Attributes
    ----------
    master_key : bytes
        The raw 32-byte master key, created on first access.
    """

    def __init__(self, config) -> None:
        self.config = config
        self._master_key: Optional[bytes] = None

        # One Fernet per (passphrase, salt); PBKDF2 runs once for each pair.
        self._fernets: Dict[Tuple[str, bytes], Fernet] = {}

    # ------------------------------------------------------------------
    # Master key
    # ------------------------------------------------------------------

    @property
    def master_key(self) -> bytes:
        if self._master_key is None:
            self._master_key = self._load_or_create_master_key()
        return self._master_key

    def _load_or_create_master_key(self) -> bytes:
        """
        Read the master key from config.master_key_path, generating and
        storing a new random key (owner-readable only) when the file does
        not exist yet.
        """
        path = self.config.master_key_path
        if os.path.exists(path):
            with open(path, "rb") as fh:
                key = fh.read()
            if len(key) != 32:
                raise ValueError(f"Master key file {path} is corrupted")
            return key

        key = AESGCM.generate_key(bit_length=256)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "wb") as fh:
            fh.write(key)
        logger.info("Created new master key at %s", path)
        return key

    def derive_subkey(self, info: bytes, length: int = 32, salt: Optional[bytes] = None) -> bytes:
        """
        Derive a *length*-byte key for one purpose (*info*) from the master
        key using HKDF-SHA256.
        """
        hkdf = HKDF(
            algorithm=hashes.SHA256(),
            length=length,
            salt=salt,
            info=info,
        )
        return hkdf.derive(self.master_key)

    # ------------------------------------------------------------------
    # Passphrase keys (database)
    # ------------------------------------------------------------------

    @staticmethod
    def derive_key(password: str, salt: bytes) -> bytes:
        """
        Derive a 32-byte Fernet-compatible key from *password* and *salt*
        using PBKDF2-HMAC-SHA256 with PBKDF2_ITERATIONS iterations.

        The raw 32 bytes are URL-safe base64-encoded so they can be passed
        directly to Fernet().
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=PBKDF2_ITERATIONS,
        )
        raw_key = kdf.derive(password.encode("utf-8"))
        return base64.urlsafe_b64encode(raw_key)

    def passphrase_fernet(self, password: str, salt: bytes) -> Fernet:
        """Return a (cached) Fernet keyed from *password* and *salt*."""
        cache_key = (password, salt)
        fernet = self._fernets.get(cache_key)
        if fernet is None:
            fernet = Fernet(self.derive_key(password, salt))
            self._fernets[cache_key] = fernet
        return fernet

    # ------------------------------------------------------------------
    # AEAD primitives (preferences)
    # ------------------------------------------------------------------

    @staticmethod
    def gcm_encrypt(key: bytes, plaintext: bytes, aad: Optional[bytes] = None) -> bytes:
        """Encrypt with AES-GCM; returns nonce || ciphertext || tag."""
        nonce = os.urandom(NONCE_SIZE)
        return nonce + AESGCM(key).encrypt(nonce, plaintext, aad)

    @staticmethod
    def gcm_decrypt(key: bytes, blob: bytes, aad: Optional[bytes] = None) -> bytes:
        """
        Inverse of gcm_encrypt().

        Raises cryptography.exceptions.InvalidTag on a wrong key, wrong
        associated data or tampered data.
        """
        nonce, ciphertext = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
        return AESGCM(key).decrypt(nonce, ciphertext, aad)

    @staticmethod
    def siv_encrypt(key: bytes, plaintext: bytes) -> bytes:
        """Deterministic AES-SIV encryption (same input, same output)."""
        return AESSIV(key).encrypt(plaintext, None)

    @staticmethod
    def siv_decrypt(key: bytes, ciphertext: bytes) -> bytes:
        return AESSIV(key).decrypt(ciphertext, None)

    # ------------------------------------------------------------------
    # Exported file format
    # ------------------------------------------------------------------

    def encrypt_file_bytes(self, data: bytes) -> bytes:
        """
        Encrypt *data* into the export file format:

          b"INVX" | version (1 byte) | salt (16) | nonce (12) | ciphertext

        A fresh salt gives every file its own HKDF-derived AES-256 key; the
        header is bound to the ciphertext as associated data.
        """
        salt = os.urandom(SALT_SIZE)
        nonce = os.urandom(NONCE_SIZE)
        header = EXPORT_MAGIC + bytes([EXPORT_VERSION]) + salt + nonce
        key = self.derive_subkey(INFO_EXPORT, salt=salt)
        return header + AESGCM(key).encrypt(nonce, data, header)

    def decrypt_file_bytes(self, blob: bytes) -> bytes:
        """
        Decrypt bytes produced by encrypt_file_bytes().

        Raises ValueError when *blob* is not in the export format and
        cryptography.exceptions.InvalidTag when it was encrypted with
        another master key or was modified.
        """
        if len(blob) < EXPORT_HEADER_SIZE or not blob.startswith(EXPORT_MAGIC):
            raise ValueError("Not an encrypted inventory export")
        version = blob[len(EXPORT_MAGIC)]
        if version != EXPORT_VERSION:
            raise ValueError(f"Unsupported export format version {version}")

        header = blob[:EXPORT_HEADER_SIZE]
        salt_start = len(EXPORT_MAGIC) + 1
        salt = header[salt_start:salt_start + SALT_SIZE]
        nonce = header[salt_start + SALT_SIZE:]
        key = self.derive_subkey(INFO_EXPORT, salt=salt)
        return AESGCM(key).decrypt(nonce, blob[EXPORT_HEADER_SIZE:], header)

    def encrypt_bytes_to_file(self, data: bytes, out_path: str) -> None:
        """Encrypt *data* in the export format and write it to *out_path*."""
        with open(out_path, "wb") as fh:
            fh.write(self.encrypt_file_bytes(data))

    def decrypt_file(self, encrypted_path: str) -> bytes:
        """Read *encrypted_path* and return its decrypted contents."""
        with open(encrypted_path, "rb") as fh:
            return self.decrypt_file_bytes(fh.read())
