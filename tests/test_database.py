import logging
import os
import sqlite3

import pytest
from cryptography.fernet import InvalidToken

from database import (
    SCHEMA, DatabaseState, InventoryDatabase, get_database, get_database_state,
)
from models import Item


def make_plaintext_database(path, items):
    conn = sqlite3.connect(path)
    conn.execute(SCHEMA)
    conn.executemany(
        "INSERT INTO items (name, price, quantity, provider_name, provider_email, "
        "provider_phone, source) VALUES (?, ?, ?, ?, ?, ?, ?)",
        [
            (i.name, i.price, i.quantity, i.provider_name, i.provider_email,
             i.provider_phone, i.source)
            for i in items
        ],
    )
    conn.commit()
    conn.close()


def test_state_of_missing_and_empty_file(tmp_path):
    path = tmp_path / "db"
    assert get_database_state(str(path)) is DatabaseState.DOES_NOT_EXIST
    path.write_bytes(b"")
    assert get_database_state(str(path)) is DatabaseState.DOES_NOT_EXIST


def test_state_of_plain_sqlite_file(tmp_path):
    path = tmp_path / "db"
    make_plaintext_database(str(path), [])
    assert get_database_state(str(path)) is DatabaseState.UNENCRYPTED


def test_new_database_is_encrypted_on_disk(app_config, database):
    assert get_database_state(app_config.db_path) is DatabaseState.ENCRYPTED
    with open(app_config.db_path, "rb") as fh:
        assert b"SQLite format 3" not in fh.read()


def test_items_survive_reopening(app_config, crypto, database):
    item_id = database.insert(Item(name="Bolt", price=0.25, quantity=400,
                                   provider_email="bolts@example.com"))
    database.close()

    with InventoryDatabase(app_config, crypto) as reopened:
        stored = reopened.get_item(item_id)
    assert stored == Item(id=item_id, name="Bolt", price=0.25, quantity=400,
                          provider_email="bolts@example.com")


def test_wrong_passphrase_is_rejected(app_config, crypto, database):
    database.insert(Item(name="Nut", price=0.1, quantity=1))
    database.close()
    with pytest.raises(InvalidToken):
        InventoryDatabase(app_config, crypto, password="not the password")


def test_items_are_listed_by_name(database):
    for name in ("Washer", "Anchor", "Nail"):
        database.insert(Item(name=name, price=1.0, quantity=1))
    assert [i.name for i in database.get_all_items()] == ["Anchor", "Nail", "Washer"]


def test_insert_with_existing_id_is_ignored(database):
    item_id = database.insert(Item(name="Hinge", price=3.0, quantity=2))
    assert database.insert(Item(id=item_id, name="Other", price=1.0, quantity=1)) == -1
    assert database.get_item(item_id).name == "Hinge"


def test_insert_constraint_failure_is_raised(database):
    with pytest.raises(sqlite3.IntegrityError):
        database.insert(Item(name=None, price=1.0, quantity=1))
    assert database.get_all_items() == []


def test_failed_write_is_logged_and_raised(app_config, database, monkeypatch, caplog):
    with open(app_config.db_path, "rb") as fh:
        before = fh.read()

    def failing_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", failing_replace)

    with caplog.at_level(logging.ERROR, logger="Inventory"):
        with pytest.raises(OSError, match="disk full"):
            database.insert(Item(name="Hinge", price=3.0, quantity=2))

    assert any("Failed to write encrypted database" in r.getMessage() and r.exc_info
               for r in caplog.records)
    with open(app_config.db_path, "rb") as fh:
        assert fh.read() == before


def test_update_and_delete(database):
    item_id = database.insert(Item(name="Hinge", price=3.0, quantity=2))
    assert database.update(Item(id=item_id, name="Hinge", price=3.5, quantity=7)) == 1
    assert database.get_item(item_id).quantity == 7
    assert database.delete(Item(id=item_id)) == 1
    assert database.get_item(item_id) is None
    assert database.delete(Item(id=item_id)) == 0


def test_plaintext_database_is_migrated(app_config, crypto):
    make_plaintext_database(app_config.db_path, [
        Item(name="Saw", price=19.99, quantity=3, provider_name="Tools Ltd"),
        Item(name="Axe", price=35.0, quantity=1),
    ])

    with InventoryDatabase(app_config, crypto) as db:
        names = [i.name for i in db.get_all_items()]
        saw = db.get_all_items()[1]

    assert names == ["Axe", "Saw"]
    assert saw.price == 19.99
    assert saw.provider_name == "Tools Ltd"
    assert get_database_state(app_config.db_path) is DatabaseState.ENCRYPTED
    assert not os.path.exists(app_config.db_temp_path)
    assert not os.path.exists(app_config.db_backup_path)


def test_failed_rename_to_backup_aborts(app_config, crypto, monkeypatch):
    make_plaintext_database(app_config.db_path, [Item(name="Saw", price=1.0, quantity=1)])
    real_rename = os.rename

    def failing_rename(src, dst):
        if dst == app_config.db_backup_path:
            raise PermissionError("denied")
        real_rename(src, dst)

    monkeypatch.setattr(os, "rename", failing_rename)

    with pytest.raises(OSError, match="Could not rename"):
        InventoryDatabase(app_config, crypto)

    assert get_database_state(app_config.db_path) is DatabaseState.UNENCRYPTED
    assert not os.path.exists(app_config.db_temp_path)


def test_failed_rename_of_temp_restores_original(app_config, crypto, monkeypatch):
    make_plaintext_database(app_config.db_path, [Item(name="Saw", price=1.0, quantity=1)])
    real_rename = os.rename

    def failing_rename(src, dst):
        if src == app_config.db_temp_path:
            raise PermissionError("denied")
        real_rename(src, dst)

    monkeypatch.setattr(os, "rename", failing_rename)

    with pytest.raises(OSError, match="Could not rename"):
        InventoryDatabase(app_config, crypto)

    assert get_database_state(app_config.db_path) is DatabaseState.UNENCRYPTED
    assert not os.path.exists(app_config.db_backup_path)


def test_interrupted_migration_is_resumed(app_config, crypto):
    make_plaintext_database(app_config.db_backup_path, [Item(name="Saw", price=1.0, quantity=1)])

    with InventoryDatabase(app_config, crypto) as db:
        assert [i.name for i in db.get_all_items()] == ["Saw"]

    assert get_database_state(app_config.db_path) is DatabaseState.ENCRYPTED
    assert not os.path.exists(app_config.db_backup_path)


def test_leftovers_beside_encrypted_database_are_removed(app_config, crypto):
    InventoryDatabase(app_config, crypto).close()
    make_plaintext_database(app_config.db_backup_path, [Item(name="Saw", price=1.0, quantity=1)])
    with open(app_config.db_temp_path, "wb") as fh:
        fh.write(b"partial")

    with InventoryDatabase(app_config, crypto) as db:
        assert db.get_all_items() == []

    assert get_database_state(app_config.db_path) is DatabaseState.ENCRYPTED
    assert not os.path.exists(app_config.db_backup_path)
    assert not os.path.exists(app_config.db_temp_path)


def test_get_database_returns_one_instance_per_file(app_config, crypto):
    first = get_database(app_config, crypto)
    try:
        assert get_database(app_config, crypto) is first
    finally:
        first.close()
    second = get_database(app_config, crypto)
    try:
        assert second is not first
    finally:
        second.close()
