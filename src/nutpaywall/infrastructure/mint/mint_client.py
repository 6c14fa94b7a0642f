"""Async client for the Cashu mint HTTP API (v1, bolt11 method)."""

from __future__ import annotations

from typing import Optional, Type
from types import TracebackType

import httpx
from pydantic import BaseModel, Field, ValidationError

from ...crypto.token import BlindedMessage, BlindSignature
from ..http.http_client import AsyncHttpClient, HttpRequestError, HttpResponseError


class MintError(Exception):
    """The mint answered with a client error (Cashu error body)."""

    def __init__(self, status_code: int, detail: str, code: Optional[int] = None):
        super().__init__(f"mint error {status_code}: {detail} (code={code})")
        self.status_code = status_code
        self.detail = detail
        self.code = code


class MintUnavailable(Exception):
    """The mint could not be reached, or kept failing with 5xx."""


class MintQuoteRequest(BaseModel):
    amount: int
    unit: str
    description: Optional[str] = None


class MintQuoteResponse(BaseModel):
    quote: str
    request: str
    state: Optional[str] = None
    paid: Optional[bool] = None
    expiry: Optional[int] = None
    amount: Optional[int] = None
    unit: Optional[str] = None


class KeysetInfo(BaseModel):
    id: str
    unit: str
    active: bool = True
    input_fee_ppk: int = 0


class KeysetsResponse(BaseModel):
    keysets: list[KeysetInfo]


class Keyset(BaseModel):
    id: str
    unit: str
    keys: dict[str, str]

    def key_for(self, amount: int) -> Optional[str]:
        return self.keys.get(str(amount))

    @property
    def denominations(self) -> list[int]:
        return sorted(int(a) for a in self.keys)


class KeysResponse(BaseModel):
    keysets: list[Keyset]


class MintRequest(BaseModel):
    quote: str
    outputs: list[BlindedMessage]


class MintResponse(BaseModel):
    signatures: list[BlindSignature] = Field(default_factory=list)


def _mint_error_from_response(response: httpx.Response) -> MintError:
    detail = response.text
    code: Optional[int] = None
    try:
        body = response.json()
        if isinstance(body, dict):
            detail = str(body.get("detail", detail))
            code = body.get("code")
    except ValueError:
        pass
    return MintError(response.status_code, detail, code)


class AsyncMintClient:
    """Asynchronous client bound to the Cashu mint wire models.

    Raises MintError for 4xx answers and MintUnavailable for transport
    failures or persistent 5xx answers.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        *,
        max_retries: int = 0,
        retry_backoff: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = AsyncHttpClient(
            self.base_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_backoff=retry_backoff,
            transport=transport,
        )

    async def _call(self, method: str, path: str, model: Type[BaseModel], **kwargs):
        try:
            if method == "GET":
                resp = await self._http.get(path)
            else:
                resp = await self._http.post(path, **kwargs)
        except HttpResponseError as e:
            if e.response.status_code < 500:
                raise _mint_error_from_response(e.response) from e
            raise MintUnavailable(str(e)) from e
        except HttpRequestError as e:
            raise MintUnavailable(str(e)) from e

        try:
            return model.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise MintError(resp.status_code, f"malformed mint response: {e}") from e

    async def create_mint_quote(self, dto: MintQuoteRequest) -> MintQuoteResponse:
        # Not idempotent: a retried POST could create two quotes
        return await self._call(
            "POST",
            "/v1/mint/quote/bolt11",
            MintQuoteResponse,
            json=dto.model_dump(exclude_none=True),
            retry=False,
        )

    async def get_mint_quote(self, quote_id: str) -> MintQuoteResponse:
        return await self._call("GET", f"/v1/mint/quote/bolt11/{quote_id}", MintQuoteResponse)

    async def get_keysets(self) -> KeysetsResponse:
        return await self._call("GET", "/v1/keysets", KeysetsResponse)

    async def get_keys(self, keyset_id: str) -> KeysResponse:
        return await self._call("GET", f"/v1/keys/{keyset_id}", KeysResponse)

    async def mint(self, dto: MintRequest) -> MintResponse:
        # Mints reject a replayed quote once issued, so retrying cannot double-sign
        return await self._call(
            "POST", "/v1/mint/bolt11", MintResponse, json=dto.model_dump()
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "AsyncMintClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.aclose()
