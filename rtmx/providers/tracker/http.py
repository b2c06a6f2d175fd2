"""HTTP and environment plumbing shared by the tracker adapters.

Adapters never build their own transport.  They receive an object with
an async ``request(method, url, **kwargs)`` returning an
``httpx.Response`` (normally an ``httpx.AsyncClient``) and an
environment lookup used to resolve credentials.  Tests swap in an
``httpx.MockTransport`` and a dict lookup.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Protocol, TypeVar

import httpx

from rtmx.errors import (
    DeadlineExceededError,
    IOFailureError,
    MisconfiguredAdapterError,
    NotFoundError,
    RemoteError,
)

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_TIMEOUT = 30.0

T = TypeVar("T")

EnvLookup = Callable[[str], "str | None"]


class HTTPRequester(Protocol):
    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response: ...


def default_getenv(key: str) -> str | None:
    return os.environ.get(key)


def default_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=DEFAULT_CLIENT_TIMEOUT)


def resolve_env(getenv: EnvLookup, var_name: str, label: str) -> str:
    """Look up a credential, failing construction when it is unset."""
    value = getenv(var_name)
    if not value:
        raise MisconfiguredAdapterError(
            f"{label} not found. Set {var_name} environment variable", env=var_name
        )
    return value


async def with_deadline(operation: Awaitable[T], timeout: float, what: str) -> T:
    """Await *operation*, raising ``DeadlineExceededError`` after *timeout* seconds."""
    try:
        return await asyncio.wait_for(operation, timeout)
    except asyncio.TimeoutError as e:
        raise DeadlineExceededError(f"{what} timed out after {timeout:g}s", timeout) from e


async def send_json(
    client: HTTPRequester,
    method: str,
    url: str,
    *,
    timeout: float,
    expected: Iterable[int] = (200,),
    **kwargs: Any,
) -> Any:
    """Send one request and decode its JSON body.

    Returns ``None`` for an empty body.  A 404 raises ``NotFoundError``;
    any other status outside *expected* raises ``RemoteError``.  The
    response is closed on every path.
    """
    try:
        response = await client.request(method, url, timeout=timeout, **kwargs)
    except httpx.TimeoutException as e:
        raise DeadlineExceededError(f"{method} {url} timed out", timeout) from e
    except httpx.HTTPError as e:
        raise IOFailureError(f"{method} {url} failed: {e}", url=url) from e

    try:
        status = response.status_code
        if status == 404:
            raise NotFoundError(f"{method} {url}: not found", url=url)
        if status not in tuple(expected):
            raise RemoteError(f"{method} {url}: HTTP {status}", status, url=url)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise IOFailureError(f"failed to parse response from {url}: {e}", url=url) from e
    finally:
        await response.aclose()


def require_field(body: Any, key: str, what: str) -> Any:
    """``body[key]`` from a decoded response, or ``IOFailureError``.

    An empty body decodes to ``None``, and a tracker that answers with
    a success status but no identifier cannot be linked to.
    """
    if not isinstance(body, dict) or body.get(key) in (None, ""):
        raise IOFailureError(f"{what}: response has no {key!r}", field=key)
    return body[key]
