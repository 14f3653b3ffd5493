from datetime import date

import pytest

from fakes import MemoryStore


@pytest.fixture
def today():
    return date(2024, 5, 15)


@pytest.fixture
def clock(today):
    return lambda: today


@pytest.fixture
def store():
    return MemoryStore()
