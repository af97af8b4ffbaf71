import pytest

from fakes import InMemoryStore


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()
