import os
import stat

import pytest
from cryptography.exceptions import InvalidTag

from crypto import EXPORT_HEADER_SIZE, EXPORT_MAGIC, CryptoManager


def test_master_key_is_created_once(app_config, crypto):
    key = crypto.master_key
    assert len(key) == 32
    assert os.path.exists(app_config.master_key_path)
    assert CryptoManager(app_config).master_key == key


@pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
def test_master_key_file_is_private(app_config, crypto):
    crypto.master_key
    mode = stat.S_IMODE(os.stat(app_config.master_key_path).st_mode)
    assert mode == 0o600


def test_corrupted_master_key_is_rejected(app_config):
    with open(app_config.master_key_path, "wb") as fh:
        fh.write(b"short")
    with pytest.raises(ValueError):
        CryptoManager(app_config).master_key


def test_file_format(crypto):
    blob = crypto.encrypt_file_bytes(b"payload")
    assert blob.startswith(EXPORT_MAGIC)
    assert b"payload" not in blob
    assert crypto.decrypt_file_bytes(blob) == b"payload"
    # Fresh salt and nonce every time.
    assert crypto.encrypt_file_bytes(b"payload")[:EXPORT_HEADER_SIZE] != blob[:EXPORT_HEADER_SIZE]


def test_tampered_file_is_rejected(crypto):
    blob = bytearray(crypto.encrypt_file_bytes(b"payload"))
    blob[-1] ^= 0x01
    with pytest.raises(InvalidTag):
        crypto.decrypt_file_bytes(bytes(blob))


def test_foreign_file_is_rejected(crypto):
    with pytest.raises(ValueError):
        crypto.decrypt_file_bytes(b"SQLite format 3\x00" + b"\x00" * 64)


def test_gcm_binds_associated_data(crypto):
    key = crypto.derive_subkey(b"test")
    blob = crypto.gcm_encrypt(key, b"value", b"Hide")
    assert crypto.gcm_decrypt(key, blob, b"Hide") == b"value"
    with pytest.raises(InvalidTag):
        crypto.gcm_decrypt(key, blob, b"Forbid")


def test_siv_is_deterministic(crypto):
    key = crypto.derive_subkey(b"test", length=64)
    assert crypto.siv_encrypt(key, b"Hide") == crypto.siv_encrypt(key, b"Hide")
    assert crypto.siv_decrypt(key, crypto.siv_encrypt(key, b"Hide")) == b"Hide"
