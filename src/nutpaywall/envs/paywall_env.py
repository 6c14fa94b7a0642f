from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

SUPPORTED_PROVIDERS = ("cashu",)

# keysets, keys and mint requests made by one token claim
MINT_CALLS_PER_CLAIM = 3


class Settings(BaseModel):
    database_url: str

    api_host: str
    api_port: int
    api_debug: bool
    api_workers: int
    api_cors_origins: list[str]

    app_name: str
    app_version: str

    # Paywall behaviour
    base_path: str
    protected_path: str
    token_validity_days: int
    default_amount: int
    default_unit: str
    title: str
    description: Optional[str] = None
    enable_logging: bool

    # Payment provider
    provider: str
    cashu_mint_url: str
    store_tokens: bool
    mint_timeout_seconds: float
    mint_max_retries: int
    mint_retry_backoff_seconds: float
    claim_lease_seconds: float

    @field_validator("base_path", "protected_path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("Paths must start with '/'")
        v = v.rstrip("/")
        if not v:
            raise ValueError("Paths cannot be the root path")
        return v

    @field_validator(
        "token_validity_days",
        "default_amount",
        "mint_timeout_seconds",
        "claim_lease_seconds",
    )
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Value must be greater than zero")
        return v

    @field_validator("mint_max_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("mint_max_retries cannot be negative")
        return v

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        v = v.lower()
        if v not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Unsupported payment provider: {v}")
        return v

    @model_validator(mode="after")
    def validate_mint_url(self) -> "Settings":
        if self.provider == "cashu" and not self.cashu_mint_url:
            raise ValueError("PAYWALL_CASHU_MINT_URL is required for the cashu provider")
        return self

    @property
    def mint_claim_budget_seconds(self) -> float:
        """Worst-case time one claim spends talking to the mint."""
        backoff = self.mint_retry_backoff_seconds * (2**self.mint_max_retries - 1)
        per_call = (self.mint_max_retries + 1) * self.mint_timeout_seconds + backoff
        return MINT_CALLS_PER_CLAIM * per_call

    @model_validator(mode="after")
    def validate_claim_lease(self) -> "Settings":
        # A lease that expires mid-claim lets a second claimer start
        if self.claim_lease_seconds < self.mint_claim_budget_seconds:
            raise ValueError(
                f"claim_lease_seconds ({self.claim_lease_seconds}) must cover the "
                f"mint budget of {self.mint_claim_budget_seconds} seconds"
            )
        return self


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() == "true"


def get_settings() -> Settings:
    api_cors_origins_str = os.environ.get("PAYWALL_API_CORS_ORIGINS", "*")

    return Settings(
        database_url=os.environ.get("PAYWALL_DATABASE_URL", "redis://localhost:6379/0"),
        api_host=os.environ.get("PAYWALL_API_HOST", "0.0.0.0"),
        api_port=int(os.environ.get("PAYWALL_API_PORT", "8000")),
        api_debug=_env_bool("PAYWALL_API_DEBUG", False),
        api_workers=int(os.environ.get("PAYWALL_API_WORKERS", "1")),
        api_cors_origins=api_cors_origins_str.split(","),
        app_name=os.environ.get("PAYWALL_APP_NAME", "NutPaywall"),
        app_version=os.environ.get("PAYWALL_APP_VERSION", "1.0.0"),
        base_path=os.environ.get("PAYWALL_BASE_PATH", "/paywall"),
        protected_path=os.environ.get("PAYWALL_PROTECTED_PATH", "/mcp"),
        token_validity_days=int(os.environ.get("PAYWALL_TOKEN_VALIDITY_DAYS", "7")),
        default_amount=int(os.environ.get("PAYWALL_DEFAULT_AMOUNT", "99")),
        default_unit=os.environ.get("PAYWALL_DEFAULT_UNIT", "usd"),
        title=os.environ.get("PAYWALL_TITLE", "MCP Server Access"),
        description=os.environ.get("PAYWALL_DESCRIPTION"),
        enable_logging=_env_bool("PAYWALL_ENABLE_LOGGING", True),
        provider=os.environ.get("PAYWALL_PROVIDER", "cashu"),
        cashu_mint_url=os.environ.get("PAYWALL_CASHU_MINT_URL", ""),
        store_tokens=_env_bool("PAYWALL_STORE_TOKENS", True),
        mint_timeout_seconds=float(os.environ.get("PAYWALL_MINT_TIMEOUT_SECONDS", "10")),
        mint_max_retries=int(os.environ.get("PAYWALL_MINT_MAX_RETRIES", "2")),
        mint_retry_backoff_seconds=float(
            os.environ.get("PAYWALL_MINT_RETRY_BACKOFF_SECONDS", "0.5")
        ),
        claim_lease_seconds=float(os.environ.get("PAYWALL_CLAIM_LEASE_SECONDS", "120")),
    )
