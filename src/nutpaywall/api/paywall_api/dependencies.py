"""FastAPI dependencies for the paywall API."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends

from ...application.paywall.use_cases.maintenance import MaintenanceService
from ...application.paywall.use_cases.paywall import PaywallService
from ...domain.paywall.payment_record_repository import PaymentRecordRepository
from ...domain.shared import PaymentProvider
from ...envs.paywall_env import Settings, get_settings
from ...infrastructure.database import get_database_client
from ...infrastructure.mint.cashu_provider import CashuPaymentProvider
from ...infrastructure.mint.mint_client import AsyncMintClient
from ...infrastructure.paywall.payment_record_repository_impl import (
    PaymentRecordRepositoryImpl,
)
from ...infrastructure.storage import KeyValueStore, RedisKeyValueStore

# Process-wide instances; the store remembers registered script SHAs and the
# provider owns a pooled HTTP client.
_key_value_store: Optional[KeyValueStore] = None
_payment_provider: Optional[PaymentProvider] = None


def build_key_value_store(settings: Settings) -> KeyValueStore:
    """Get or create the key-value store singleton."""
    global _key_value_store
    if _key_value_store is None:
        _key_value_store = RedisKeyValueStore(get_database_client(settings))
    return _key_value_store


def build_payment_record_repository(settings: Settings) -> PaymentRecordRepository:
    return PaymentRecordRepositoryImpl(
        build_key_value_store(settings),
        claim_lease_seconds=settings.claim_lease_seconds,
    )


def build_payment_provider(settings: Settings) -> PaymentProvider:
    """Get or create the configured payment provider singleton."""
    global _payment_provider
    if _payment_provider is None:
        mint_client = AsyncMintClient(
            settings.cashu_mint_url,
            timeout=settings.mint_timeout_seconds,
            max_retries=settings.mint_max_retries,
            retry_backoff=settings.mint_retry_backoff_seconds,
        )
        _payment_provider = CashuPaymentProvider(
            mint_client, store_tokens=settings.store_tokens
        )
    return _payment_provider


async def close_shared_resources(settings: Settings) -> None:
    global _key_value_store, _payment_provider
    await get_database_client(settings).close()
    if isinstance(_payment_provider, CashuPaymentProvider):
        await _payment_provider.aclose()
    _payment_provider = None
    _key_value_store = None


def get_key_value_store(
    settings: Settings = Depends(get_settings),
) -> KeyValueStore:
    """Get key-value store."""
    return build_key_value_store(settings)


def get_payment_record_repository(
    store: KeyValueStore = Depends(get_key_value_store),
    settings: Settings = Depends(get_settings),
) -> PaymentRecordRepository:
    """Get payment record repository."""
    return PaymentRecordRepositoryImpl(
        store, claim_lease_seconds=settings.claim_lease_seconds
    )


def get_payment_provider(
    settings: Settings = Depends(get_settings),
) -> PaymentProvider:
    """Get payment provider."""
    return build_payment_provider(settings)


def get_paywall_service(
    payment_record_repository: PaymentRecordRepository = Depends(
        get_payment_record_repository
    ),
    payment_provider: PaymentProvider = Depends(get_payment_provider),
    settings: Settings = Depends(get_settings),
) -> PaywallService:
    """Get paywall service."""
    return PaywallService(
        payment_record_repository,
        payment_provider,
        token_validity_days=settings.token_validity_days,
        default_amount=settings.default_amount,
        default_unit=settings.default_unit,
        title=settings.title,
        protected_path=settings.protected_path,
        enable_logging=settings.enable_logging,
    )


def get_maintenance_service(
    payment_record_repository: PaymentRecordRepository = Depends(
        get_payment_record_repository
    ),
    settings: Settings = Depends(get_settings),
) -> MaintenanceService:
    """Get maintenance service."""
    return MaintenanceService(
        payment_record_repository, enable_logging=settings.enable_logging
    )
