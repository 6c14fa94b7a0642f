"""Use case tests for MaintenanceService."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from nutpaywall.application.paywall.use_cases.maintenance import MaintenanceService
from nutpaywall.domain.paywall.entities import PaymentRecord
from tests.fixtures import InMemoryPaymentRecordRepository

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


async def seed(
    repo: InMemoryPaymentRecordRepository,
    quote_id: str,
    *,
    created_days_ago: float,
    paid: bool,
    amount: int = 10,
    unit: str = "sat",
    validity_days: float = 7,
) -> PaymentRecord:
    created_at = NOW - timedelta(days=created_days_ago)
    record = PaymentRecord(
        quote_id=quote_id,
        access_token=f"token-{quote_id}",
        created_at=created_at,
        expires_at=created_at + timedelta(days=validity_days),
        amount=amount,
        unit=unit,
        provider="cashu",
    )
    await repo.create(record)
    if paid:
        _, record = await repo.mark_paid(
            record.mark_paid(paid_at=created_at + timedelta(minutes=1)), "owner"
        )
    return record


@pytest.mark.asyncio
async def test_statistics_on_empty_store(
    maintenance_service: MaintenanceService,
) -> None:
    stats = await maintenance_service.get_statistics(now=NOW)

    assert stats.total_payments == 0
    assert stats.paid_payments == 0
    assert stats.conversion_rate == 0.0
    assert stats.revenue_by_unit == []


@pytest.mark.asyncio
async def test_statistics_aggregate_records(
    maintenance_service: MaintenanceService,
    payment_record_repository: InMemoryPaymentRecordRepository,
) -> None:
    await seed(payment_record_repository, "active-sat", created_days_ago=1, paid=True)
    await seed(
        payment_record_repository,
        "active-usd",
        created_days_ago=2,
        paid=True,
        amount=99,
        unit="usd",
    )
    await seed(payment_record_repository, "expired", created_days_ago=10, paid=True)
    await seed(payment_record_repository, "unpaid", created_days_ago=1, paid=False)

    stats = await maintenance_service.get_statistics(now=NOW)

    assert stats.total_payments == 4
    assert stats.paid_payments == 3
    assert stats.active_tokens == 2
    assert stats.expired_tokens == 1
    assert stats.conversion_rate == pytest.approx(0.75)
    assert [(r.unit, r.total) for r in stats.revenue_by_unit] == [
        ("sat", 20),
        ("usd", 99),
    ]


@pytest.mark.asyncio
async def test_statistics_page_through_all_records(
    payment_record_repository: InMemoryPaymentRecordRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(
        "nutpaywall.application.paywall.use_cases.maintenance.PAGE_SIZE", 2
    )
    for i in range(5):
        await seed(payment_record_repository, f"q{i}", created_days_ago=1, paid=i < 3)

    stats = await MaintenanceService(payment_record_repository).get_statistics(now=NOW)

    assert stats.total_payments == 5
    assert stats.paid_payments == 3


@pytest.mark.asyncio
async def test_cleanup_removes_only_records_past_retention(
    maintenance_service: MaintenanceService,
    payment_record_repository: InMemoryPaymentRecordRepository,
) -> None:
    # Expired 33 days ago
    old = await seed(payment_record_repository, "old", created_days_ago=40, paid=True)
    # Expired 23 days ago, still inside the retention window
    await seed(payment_record_repository, "recent", created_days_ago=30, paid=True)
    await seed(payment_record_repository, "unpaid-old", created_days_ago=45, paid=False)
    await seed(payment_record_repository, "fresh", created_days_ago=1, paid=False)

    cleaned = await maintenance_service.cleanup_expired_records(now=NOW)

    assert cleaned == 2
    assert await payment_record_repository.get_by_quote_id("old") is None
    assert await payment_record_repository.get_by_access_token(old.access_token) is None
    assert await payment_record_repository.get_by_quote_id("unpaid-old") is None
    assert await payment_record_repository.get_by_quote_id("recent") is not None
    assert await payment_record_repository.get_by_quote_id("fresh") is not None


@pytest.mark.asyncio
async def test_cleanup_is_idempotent(
    maintenance_service: MaintenanceService,
    payment_record_repository: InMemoryPaymentRecordRepository,
) -> None:
    await seed(payment_record_repository, "old", created_days_ago=40, paid=True)

    assert await maintenance_service.cleanup_expired_records(now=NOW) == 1
    assert await maintenance_service.cleanup_expired_records(now=NOW) == 0
