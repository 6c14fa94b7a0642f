"""In-memory repository implementations for testing."""

from __future__ import annotations

from nutpaywall.infrastructure.paywall.payment_record_repository_impl import (
    PaymentRecordRepositoryImpl,
)

from .in_memory_storage import InMemoryKeyValueStore


class InMemoryPaymentRecordRepository(PaymentRecordRepositoryImpl):
    """In-memory payment record repository running the script equivalents."""

    def __init__(self, claim_lease_seconds: float = 120.0) -> None:
        store = InMemoryKeyValueStore()
        super().__init__(store, claim_lease_seconds=claim_lease_seconds)
        self._store = store

    async def initialize(self) -> None:
        """Initialize the repository by registering scripts."""
        await self.register_scripts()

    def expire_claim_lease(self, quote_id: str) -> None:
        self._store.expire_now(f"payment_record:claim_lease:{quote_id}")

    def clear(self) -> None:
        """Clear all data (useful for test teardown)."""
        self._store.clear()
