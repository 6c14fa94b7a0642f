"""Administrative use cases: statistics and retention cleanup."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import List, Optional

from ....domain.paywall.entities import PaymentRecord, utc_now
from ....domain.paywall.payment_record_repository import PaymentRecordRepository
from ..dtos import RevenueByUnitDTO, StatisticsResponseDTO

logger = logging.getLogger(__name__)

RETENTION_DAYS = 30
PAGE_SIZE = 500


class MaintenanceService:
    def __init__(
        self,
        payment_record_repository: PaymentRecordRepository,
        *,
        retention_days: int = RETENTION_DAYS,
        enable_logging: bool = True,
    ):
        self.payment_record_repository = payment_record_repository
        self.retention_days = retention_days
        self.enable_logging = enable_logging

    async def _all_records(self) -> List[PaymentRecord]:
        records: List[PaymentRecord] = []
        skip = 0
        while True:
            page = await self.payment_record_repository.get_all(skip=skip, limit=PAGE_SIZE)
            records.extend(page)
            if len(page) < PAGE_SIZE:
                return records
            skip += PAGE_SIZE

    async def get_statistics(self, now: Optional[datetime] = None) -> StatisticsResponseDTO:
        """Read-only aggregate over all stored records."""
        now = now or utc_now()
        records = await self._all_records()

        total = len(records)
        paid = [r for r in records if r.is_paid]
        active = sum(1 for r in paid if r.is_active(now))
        expired = sum(1 for r in paid if r.is_expired(now))

        revenue: dict[str, int] = defaultdict(int)
        for record in paid:
            revenue[record.unit] += record.amount

        return StatisticsResponseDTO(
            total_payments=total,
            paid_payments=len(paid),
            active_tokens=active,
            expired_tokens=expired,
            conversion_rate=(len(paid) / total) if total else 0.0,
            revenue_by_unit=[
                RevenueByUnitDTO(unit=unit, total=amount)
                for unit, amount in sorted(revenue.items())
            ],
        )

    async def cleanup_expired_records(self, now: Optional[datetime] = None) -> int:
        """Delete records that expired more than `retention_days` ago."""
        cutoff = (now or utc_now()) - timedelta(days=self.retention_days)
        candidates = await self.payment_record_repository.get_expiring_before(cutoff)

        cleaned = 0
        for record in candidates:
            if await self.payment_record_repository.delete(record):
                cleaned += 1

        if cleaned and self.enable_logging:
            logger.info("Cleaned up %d expired payment records", cleaned)
        return cleaned
