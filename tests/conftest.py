import pytest

import crypto as crypto_module
from config import AppConfig
from crypto import CryptoManager
from database import InventoryDatabase
from export import RecordExporter
from preferences import EncryptedPreferences
from storage import ItemsRepository


@pytest.fixture(autouse=True)
def fast_kdf(monkeypatch):
    # The production work factor makes every database open take ~0.5 s.
    monkeypatch.setattr(crypto_module, "PBKDF2_ITERATIONS", 1_000)


@pytest.fixture
def app_config(tmp_path):
    return AppConfig(str(tmp_path / "data"))


@pytest.fixture
def crypto(app_config):
    return CryptoManager(app_config)


@pytest.fixture
def database(app_config, crypto):
    db = InventoryDatabase(app_config, crypto)
    yield db
    db.close()


@pytest.fixture
def repository(database):
    return ItemsRepository(database)


@pytest.fixture
def preferences(app_config, crypto):
    return EncryptedPreferences(app_config, crypto)


@pytest.fixture
def exporter(app_config, crypto):
    return RecordExporter(app_config, crypto)
