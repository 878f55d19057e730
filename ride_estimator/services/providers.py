from __future__ import annotations

import abc
import asyncio
import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import httpx

from ride_estimator.core.exceptions import AllProvidersExhausted, ProviderUnavailable

logger = logging.getLogger(__name__)

RequestT = TypeVar("RequestT")
ResultT = TypeVar("ResultT")


class Provider(abc.ABC, Generic[RequestT, ResultT]):
    """One pluggable way of answering a request. Raising or returning an empty result means "try the next one"."""

    name: str = "provider"

    @abc.abstractmethod
    async def resolve(self, request: RequestT) -> ResultT:
        raise NotImplementedError


class HttpJsonProvider(Provider[RequestT, ResultT]):
    """Base for providers backed by a JSON-over-HTTP GET endpoint."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_sec: float = 8.0,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.user_agent = user_agent
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.user_agent:
            headers["User-Agent"] = self.user_agent
        return headers

    async def _get_json(self, path: str, params: Any = None) -> Any:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_sec,
                headers=self._headers(),
                transport=self._transport,
            ) as client:
                response = await client.get(f"{self.base_url}{path}", params=params)
        except httpx.TimeoutException as exc:
            raise ProviderUnavailable(self.name, f"timeout:{exc}") from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(self.name, f"network:{exc}") from exc

        if response.status_code >= 400:
            raise ProviderUnavailable(self.name, f"http_{response.status_code}")

        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise ProviderUnavailable(self.name, "invalid_json") from exc


def _is_empty(value: Any) -> bool:
    return not value


@dataclass(slots=True)
class ChainOutcome(Generic[ResultT]):
    value: ResultT
    provider: str
    exhausted: bool = False
    failures: dict[str, str] = field(default_factory=dict)


class ProviderChain(Generic[RequestT, ResultT]):
    """Runs providers strictly in order until one yields a non-empty result.

    Every provider gets at most ``timeout_sec``. Failures advance the chain and
    are never retried. When all providers fail the ``terminal`` provider answers;
    a chain without a terminal raises :class:`AllProvidersExhausted` instead.
    """

    def __init__(
        self,
        name: str,
        providers: Sequence[Provider[RequestT, ResultT]],
        *,
        terminal: Provider[RequestT, ResultT] | None = None,
        timeout_sec: float = 8.0,
        is_empty: Callable[[ResultT], bool] = _is_empty,
    ) -> None:
        self.name = name
        self.providers = list(providers)
        self.terminal = terminal
        self.timeout_sec = timeout_sec
        self._is_empty = is_empty

    async def execute(self, request: RequestT) -> ChainOutcome[ResultT]:
        failures: dict[str, str] = {}
        for index, provider in enumerate(self.providers):
            try:
                async with asyncio.timeout(self.timeout_sec):
                    result = await provider.resolve(request)
            except TimeoutError:
                failures[provider.name] = f"timeout after {self.timeout_sec}s"
            except ProviderUnavailable as exc:
                failures[provider.name] = exc.reason
            except Exception as exc:
                failures[provider.name] = str(exc) or exc.__class__.__name__
            else:
                if not self._is_empty(result):
                    return ChainOutcome(value=result, provider=provider.name, failures=failures)
                failures[provider.name] = "empty result"

            next_name = self.providers[index + 1].name if index + 1 < len(self.providers) else None
            logger.warning(
                "Provider failed, trying fallback",
                extra={
                    "chain": self.name,
                    "provider": provider.name,
                    "fallback_provider": next_name or (self.terminal.name if self.terminal else None),
                    "error": failures[provider.name],
                },
            )

        if self.terminal is None:
            logger.error("All providers failed and no fallbacks remain", extra={"chain": self.name, "failures": failures})
            raise AllProvidersExhausted(self.name, failures)

        logger.warning(
            "All providers failed, using terminal fallback",
            extra={"chain": self.name, "provider": self.terminal.name, "failures": failures},
        )
        value = await self.terminal.resolve(request)
        return ChainOutcome(value=value, provider=self.terminal.name, exhausted=True, failures=failures)
