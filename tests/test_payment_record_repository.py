"""Tests for the payment record repository over the in-memory store."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from nutpaywall.domain.paywall.entities import PaymentRecord
from tests.fixtures import InMemoryPaymentRecordRepository

NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


def make_record(quote_id: str = "q1", token: str = "t1", **overrides) -> PaymentRecord:
    data = {
        "quote_id": quote_id,
        "access_token": token,
        "created_at": NOW,
        "expires_at": NOW + timedelta(days=7),
        "amount": 10,
        "unit": "sat",
        "provider": "cashu",
    }
    data.update(overrides)
    return PaymentRecord(**data)


@pytest.mark.asyncio
async def test_create_and_lookup(
    payment_record_repository: InMemoryPaymentRecordRepository,
) -> None:
    record = make_record()

    assert await payment_record_repository.create(record) == 1

    assert await payment_record_repository.get_by_quote_id("q1") == record
    assert await payment_record_repository.get_by_access_token("t1") == record
    assert await payment_record_repository.get_by_quote_id("missing") is None
    assert await payment_record_repository.get_by_access_token("missing") is None


@pytest.mark.asyncio
async def test_create_rejects_existing_quote(
    payment_record_repository: InMemoryPaymentRecordRepository,
) -> None:
    await payment_record_repository.create(make_record())

    assert await payment_record_repository.create(make_record(token="t2")) == 0
    assert await payment_record_repository.get_by_access_token("t2") is None


@pytest.mark.asyncio
async def test_create_rejects_access_token_collision(
    payment_record_repository: InMemoryPaymentRecordRepository,
) -> None:
    await payment_record_repository.create(make_record())

    assert await payment_record_repository.create(make_record(quote_id="q2")) == 3
    assert await payment_record_repository.get_by_quote_id("q2") is None
    assert await payment_record_repository.count() == 1


@pytest.mark.asyncio
async def test_mark_paid_wins_exactly_once(
    payment_record_repository: InMemoryPaymentRecordRepository,
) -> None:
    record = make_record()
    await payment_record_repository.create(record)

    results = await asyncio.gather(
        *(
            payment_record_repository.mark_paid(record.mark_paid(), f"owner-{i}")
            for i in range(10)
        )
    )

    statuses = [status for status, _ in results]
    assert statuses.count(1) == 1
    assert statuses.count(0) == 9
    assert all(stored is not None and stored.is_paid for _, stored in results)


@pytest.mark.asyncio
async def test_mark_paid_on_missing_record(
    payment_record_repository: InMemoryPaymentRecordRepository,
) -> None:
    status, stored = await payment_record_repository.mark_paid(
        make_record().mark_paid(), "owner"
    )

    assert status == 2
    assert stored is None


@pytest.mark.asyncio
async def test_finish_claim_requires_lease_owner(
    payment_record_repository: InMemoryPaymentRecordRepository,
) -> None:
    record = make_record()
    await payment_record_repository.create(record)
    _, paid = await payment_record_repository.mark_paid(record.mark_paid(), "winner")
    claimed = paid.with_claim_outcome("claimed", "cashuAtoken")

    status, _ = await payment_record_repository.finish_claim(claimed, "intruder")
    assert status == 0

    status, stored = await payment_record_repository.finish_claim(claimed, "winner")
    assert status == 1
    assert stored.claimed_token == "cashuAtoken"

    # Lease released with the write; a second write is rejected
    status, stored = await payment_record_repository.finish_claim(claimed, "winner")
    assert status == 0
    assert stored.claimed_token == "cashuAtoken"


@pytest.mark.asyncio
async def test_finish_claim_after_lease_expiry_is_stored(
    payment_record_repository: InMemoryPaymentRecordRepository,
) -> None:
    record = make_record()
    await payment_record_repository.create(record)
    _, paid = await payment_record_repository.mark_paid(record.mark_paid(), "winner")
    payment_record_repository.expire_claim_lease("q1")

    status, stored = await payment_record_repository.finish_claim(
        paid.with_claim_outcome("claimed", "cashuAlate"), "winner"
    )

    assert status == 1
    assert stored.claimed_token == "cashuAlate"
    assert (await payment_record_repository.get_by_quote_id("q1")).claim_status == "claimed"


@pytest.mark.asyncio
async def test_finish_claim_blocked_by_new_lease_holder(
    payment_record_repository: InMemoryPaymentRecordRepository,
) -> None:
    record = make_record()
    await payment_record_repository.create(record)
    _, paid = await payment_record_repository.mark_paid(record.mark_paid(), "winner")
    payment_record_repository.expire_claim_lease("q1")

    status, _ = await payment_record_repository.acquire_claim_lease("q1", "takeover")
    assert status == 1

    status, stored = await payment_record_repository.finish_claim(
        paid.with_claim_outcome("retriable"), "winner"
    )
    assert status == 0
    assert stored.claim_status == "pending"

    status, stored = await payment_record_repository.finish_claim(
        paid.with_claim_outcome("claimed", "cashuAtakeover"), "takeover"
    )
    assert status == 1
    assert stored.claimed_token == "cashuAtakeover"


@pytest.mark.asyncio
async def test_pending_claim_leasable_once_lease_expires(
    payment_record_repository: InMemoryPaymentRecordRepository,
) -> None:
    record = make_record()
    await payment_record_repository.create(record)
    await payment_record_repository.mark_paid(record.mark_paid(), "crashed")

    status, _ = await payment_record_repository.acquire_claim_lease("q1", "second")
    assert status == 0

    payment_record_repository.expire_claim_lease("q1")

    status, leased = await payment_record_repository.acquire_claim_lease("q1", "second")
    assert status == 1
    assert leased.claim_status == "pending"
    assert leased.needs_claim_retry


@pytest.mark.asyncio
async def test_claim_lease_refused_while_held(
    payment_record_repository: InMemoryPaymentRecordRepository,
) -> None:
    record = make_record()
    await payment_record_repository.create(record)
    _, paid = await payment_record_repository.mark_paid(record.mark_paid(), "first")

    # Lease still held by the first claimer
    status, _ = await payment_record_repository.acquire_claim_lease("q1", "second")
    assert status == 0

    await payment_record_repository.finish_claim(
        paid.with_claim_outcome("retriable"), "first"
    )

    status, leased = await payment_record_repository.acquire_claim_lease("q1", "second")
    assert status == 1
    assert leased.needs_claim_retry

    status, _ = await payment_record_repository.acquire_claim_lease("q1", "third")
    assert status == 0

    status, _ = await payment_record_repository.acquire_claim_lease("missing", "x")
    assert status == 2


@pytest.mark.asyncio
async def test_failed_claim_cannot_be_leased(
    payment_record_repository: InMemoryPaymentRecordRepository,
) -> None:
    record = make_record()
    await payment_record_repository.create(record)
    _, paid = await payment_record_repository.mark_paid(record.mark_paid(), "first")
    await payment_record_repository.finish_claim(
        paid.with_claim_outcome("failed"), "first"
    )

    status, stored = await payment_record_repository.acquire_claim_lease("q1", "second")

    assert status == 0
    assert stored.claim_status == "failed"


@pytest.mark.asyncio
async def test_get_all_newest_first_and_count(
    payment_record_repository: InMemoryPaymentRecordRepository,
) -> None:
    for i in range(5):
        await payment_record_repository.create(
            make_record(f"q{i}", f"t{i}", created_at=NOW + timedelta(minutes=i))
        )

    page = await payment_record_repository.get_all(skip=1, limit=2)

    assert [r.quote_id for r in page] == ["q3", "q2"]
    assert await payment_record_repository.count() == 5


@pytest.mark.asyncio
async def test_get_expiring_before_is_strict(
    payment_record_repository: InMemoryPaymentRecordRepository,
) -> None:
    await payment_record_repository.create(make_record("old", "t-old"))
    await payment_record_repository.create(
        make_record("new", "t-new", expires_at=NOW + timedelta(days=30))
    )

    cutoff = NOW + timedelta(days=7)
    expiring = await payment_record_repository.get_expiring_before(cutoff)
    assert expiring == []

    expiring = await payment_record_repository.get_expiring_before(
        cutoff + timedelta(seconds=1)
    )
    assert [r.quote_id for r in expiring] == ["old"]


@pytest.mark.asyncio
async def test_delete_removes_record_and_indexes(
    payment_record_repository: InMemoryPaymentRecordRepository,
) -> None:
    record = make_record()
    await payment_record_repository.create(record)

    assert await payment_record_repository.delete(record) is True

    assert await payment_record_repository.get_by_quote_id("q1") is None
    assert await payment_record_repository.get_by_access_token("t1") is None
    assert await payment_record_repository.count() == 0
    assert await payment_record_repository.delete(record) is False
