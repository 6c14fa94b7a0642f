"""Shared pytest fixtures for paywall tests."""

from __future__ import annotations

import os
from typing import AsyncGenerator

import pytest

# The app module reads settings at import time
os.environ.setdefault("PAYWALL_CASHU_MINT_URL", "https://mint.test")
os.environ.setdefault("PAYWALL_ENABLE_LOGGING", "false")

from nutpaywall.application.paywall.use_cases.maintenance import (  # noqa: E402
    MaintenanceService,
)
from nutpaywall.application.paywall.use_cases.paywall import PaywallService  # noqa: E402
from tests.fixtures import (  # noqa: E402
    FakePaymentProvider,
    InMemoryPaymentRecordRepository,
)


@pytest.fixture
async def payment_record_repository() -> AsyncGenerator[
    InMemoryPaymentRecordRepository, None
]:
    """Create an in-memory payment record repository with scripts loaded."""
    repo = InMemoryPaymentRecordRepository()
    await repo.initialize()
    yield repo
    repo.clear()


@pytest.fixture
def payment_provider() -> FakePaymentProvider:
    return FakePaymentProvider()


@pytest.fixture
def paywall_service(
    payment_record_repository: InMemoryPaymentRecordRepository,
    payment_provider: FakePaymentProvider,
) -> PaywallService:
    """Create a PaywallService over in-memory storage and a fake provider."""
    return PaywallService(
        payment_record_repository,
        payment_provider,
        token_validity_days=7,
        default_amount=99,
        default_unit="usd",
    )


@pytest.fixture
def maintenance_service(
    payment_record_repository: InMemoryPaymentRecordRepository,
) -> MaintenanceService:
    return MaintenanceService(payment_record_repository)
