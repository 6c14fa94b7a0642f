"""Test fixtures for in-memory implementations."""

from .fake_mint import FakeMint
from .fake_provider import FakePaymentProvider
from .in_memory_repositories import InMemoryPaymentRecordRepository
from .in_memory_storage import InMemoryKeyValueStore

__all__ = [
    "FakeMint",
    "FakePaymentProvider",
    "InMemoryKeyValueStore",
    "InMemoryPaymentRecordRepository",
]
