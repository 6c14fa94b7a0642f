"""PaymentRecord repository implementation over a storage abstraction."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from ...domain.paywall.entities import PaymentRecord
from ...domain.paywall.payment_record_repository import PaymentRecordRepository
from ..scripts import PAYWALL_SCRIPTS
from ..storage import KeyValueStore

ALL_RECORDS_KEY = "payment_records:all"
EXPIRY_INDEX_KEY = "payment_records:by_expiry"


def _record_key(quote_id: str) -> str:
    return f"payment_record:{quote_id}"


def _token_key(access_token: str) -> str:
    return f"payment_record:token:{access_token}"


def _lease_key(quote_id: str) -> str:
    return f"payment_record:claim_lease:{quote_id}"


class PaymentRecordRepositoryImpl(PaymentRecordRepository):
    """PaymentRecord repository using a KeyValueStore.

    Every write that depends on the current record state goes through a Lua
    script so that concurrent pollers of the same quote serialize in Redis.
    """

    def __init__(self, store: KeyValueStore, *, claim_lease_seconds: float = 120.0):
        self.store = store
        self.claim_lease_ms = str(int(claim_lease_seconds * 1000))

    async def register_scripts(self) -> None:
        """Load all payment record scripts into the store."""
        for name, script in PAYWALL_SCRIPTS.items():
            await self.store.register_script(name, script)

    async def _run_script(self, name: str, keys: List[str], args: List[str]) -> Any:
        if not self.store.is_script_registered(name):
            await self.register_scripts()
        return await self.store.run_script(name, keys=keys, args=args)

    @staticmethod
    def _parse_script_result(result: Any) -> tuple[int, Optional[PaymentRecord]]:
        status = int(result[0])
        raw = result[1]
        if not raw:
            return status, None
        return status, PaymentRecord.model_validate_json(raw)

    async def create(self, record: PaymentRecord) -> int:
        result = await self._run_script(
            "create_payment_record",
            keys=[
                _record_key(record.quote_id),
                _token_key(record.access_token),
                ALL_RECORDS_KEY,
                EXPIRY_INDEX_KEY,
            ],
            args=[
                record.model_dump_json(),
                record.quote_id,
                str(record.created_at.timestamp()),
                str(record.expires_at.timestamp()),
            ],
        )
        return int(result)

    async def get_by_quote_id(self, quote_id: str) -> Optional[PaymentRecord]:
        data = await self.store.get(_record_key(quote_id))
        if not data:
            return None
        return PaymentRecord.model_validate_json(data)

    async def get_by_access_token(self, access_token: str) -> Optional[PaymentRecord]:
        quote_id = await self.store.get(_token_key(access_token))
        if not quote_id:
            return None
        record = await self.get_by_quote_id(quote_id)
        if record is None or record.access_token != access_token:
            return None
        return record

    async def mark_paid(
        self, paid_record: PaymentRecord, lease_owner: str
    ) -> tuple[int, Optional[PaymentRecord]]:
        result = await self._run_script(
            "mark_paid",
            keys=[_record_key(paid_record.quote_id), _lease_key(paid_record.quote_id)],
            args=[paid_record.model_dump_json(), lease_owner, self.claim_lease_ms],
        )
        return self._parse_script_result(result)

    async def acquire_claim_lease(
        self, quote_id: str, lease_owner: str
    ) -> tuple[int, Optional[PaymentRecord]]:
        result = await self._run_script(
            "acquire_claim_lease",
            keys=[_record_key(quote_id), _lease_key(quote_id)],
            args=[lease_owner, self.claim_lease_ms],
        )
        return self._parse_script_result(result)

    async def finish_claim(
        self, claimed_record: PaymentRecord, lease_owner: str
    ) -> tuple[int, Optional[PaymentRecord]]:
        result = await self._run_script(
            "finish_claim",
            keys=[
                _record_key(claimed_record.quote_id),
                _lease_key(claimed_record.quote_id),
            ],
            args=[claimed_record.model_dump_json(), lease_owner],
        )
        return self._parse_script_result(result)

    async def _load_many(self, quote_ids: list[str]) -> List[PaymentRecord]:
        if not quote_ids:
            return []
        raw_values = await self.store.mget([_record_key(q) for q in quote_ids])
        return [PaymentRecord.model_validate_json(raw) for raw in raw_values if raw]

    async def get_all(self, skip: int = 0, limit: int = 100) -> List[PaymentRecord]:
        ids: list[str] = await self.store.zrevrange(
            ALL_RECORDS_KEY, skip, skip + limit - 1
        )
        return await self._load_many(ids)

    async def count(self) -> int:
        return await self.store.zcard(ALL_RECORDS_KEY)

    async def get_expiring_before(self, cutoff: datetime) -> List[PaymentRecord]:
        ids = await self.store.zrangebyscore(
            EXPIRY_INDEX_KEY, float("-inf"), cutoff.timestamp()
        )
        records = await self._load_many(ids)
        # zrangebyscore is inclusive; the cutoff itself is not expired enough
        return [r for r in records if r.expires_at < cutoff]

    async def delete(self, record: PaymentRecord) -> bool:
        deleted = await self._run_script(
            "delete_payment_record",
            keys=[
                _record_key(record.quote_id),
                _token_key(record.access_token),
                ALL_RECORDS_KEY,
                EXPIRY_INDEX_KEY,
            ],
            args=[record.quote_id],
        )
        return int(deleted) == 1
