import json
from pathlib import Path

import pytest

from catalog.client import CatalogClient
from storage.local_storage import MemoryKeyValueStore
from storage.memory_store import InMemoryStore

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def load_fixture(name: str):
    with open(FIXTURES / name, "r", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture()
def catalog_tables():
    return load_fixture("catalog_subset.json")


@pytest.fixture()
def memory_store(catalog_tables):
    return InMemoryStore(catalog_tables)


@pytest.fixture()
def catalog_client(memory_store):
    return CatalogClient(memory_store)


@pytest.fixture()
def kv_store():
    return MemoryKeyValueStore()
