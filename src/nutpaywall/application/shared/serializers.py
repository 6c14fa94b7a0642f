"""Shared Pydantic serializers used across DTOs."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import field_serializer


class ExpiresAtSerializerMixin:
    """Serialize an optional `expires_at` consistently."""

    @field_serializer("expires_at", check_fields=False)
    def serialize_expires_at(self, value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() if value else None


class TimestampSerializerMixin:
    """Serialize the error envelope `timestamp`.

    Uses `check_fields=False` so the mixin can be used by models that don't
    declare the field.
    """

    @field_serializer("timestamp", check_fields=False)
    def serialize_timestamp(self, value: datetime) -> str:
        return value.isoformat()
