"""Payment record domain repository interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from .entities import PaymentRecord


class PaymentRecordRepository(ABC):
    """Abstract repository interface for PaymentRecord entities."""

    @abstractmethod
    async def create(self, record: PaymentRecord) -> int:
        """Atomically insert a new record.

        Returns:
          1 -> created
          0 -> quote id already exists
          3 -> access token already exists
        """
        pass

    @abstractmethod
    async def get_by_quote_id(self, quote_id: str) -> Optional[PaymentRecord]:
        pass

    @abstractmethod
    async def get_by_access_token(self, access_token: str) -> Optional[PaymentRecord]:
        pass

    @abstractmethod
    async def mark_paid(
        self, paid_record: PaymentRecord, lease_owner: str
    ) -> tuple[int, Optional[PaymentRecord]]:
        """
        Atomically flip is_paid from false to true and take the claim lease.

        Returns:
          (1, record) -> this caller won the transition and holds the lease
          (0, record) -> already paid (returns the stored record)
          (2, None) -> record missing
        """
        pass

    @abstractmethod
    async def acquire_claim_lease(
        self, quote_id: str, lease_owner: str
    ) -> tuple[int, Optional[PaymentRecord]]:
        """
        Lease a paid, unclaimed record whose claim is retriable or was
        left pending by a claimer whose lease has expired.

        Returns:
          (1, record) -> lease acquired
          (0, record) -> nothing to retry, or another caller holds the lease
          (2, None) -> record missing
        """
        pass

    @abstractmethod
    async def finish_claim(
        self, claimed_record: PaymentRecord, lease_owner: str
    ) -> tuple[int, Optional[PaymentRecord]]:
        """
        Store the claim outcome and release the lease.

        Returns:
          (1, record) -> stored
          (0, record) -> rejected (another caller holds the lease or a token is
                         already stored); an expired lease does not reject
          (2, None) -> record missing
        """
        pass

    @abstractmethod
    async def get_all(self, skip: int = 0, limit: int = 100) -> List[PaymentRecord]:
        """Get records, newest first."""
        pass

    @abstractmethod
    async def count(self) -> int:
        pass

    @abstractmethod
    async def get_expiring_before(self, cutoff: datetime) -> List[PaymentRecord]:
        """Get records whose expires_at is strictly before cutoff."""
        pass

    @abstractmethod
    async def delete(self, record: PaymentRecord) -> bool:
        pass
