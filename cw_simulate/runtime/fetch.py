"""
HTTP ``fetch`` custom query.

Contracts may issue::

    {"custom": {"fetch": {"url": "...", "method": "POST",
                          "body": "...", "headers": ["Content-Type: text/plain"]}}}

The simulator performs the request with httpx and answers with the response
body, base64-encoded, serialized as a JSON string (the contract decodes it
with ``from_binary`` then base64).

The request runs synchronously on the calling thread, bounded by ``timeout``.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..errors import ContractError, UnsupportedRequest

log = logging.getLogger(__name__)


def _parse_headers(lines: Optional[List[str]]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for line in lines or ():
        name, sep, value = str(line).partition(":")
        # unparseable header lines are skipped
        if not sep or not name.strip():
            continue
        out[name.strip()] = value.strip()
    return out


class FetchHandler:
    """Callable custom-query handler backed by an httpx.Client."""

    def __init__(self, *, timeout: float = 10.0, client: Optional[httpx.Client] = None) -> None:
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, follow_redirects=True)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __call__(self, body: Any) -> bytes:
        if not isinstance(body, dict) or "fetch" not in body:
            kind = next(iter(body), "custom") if isinstance(body, dict) and body else "custom"
            raise UnsupportedRequest(f"custom.{kind}")
        req = body["fetch"] or {}
        url = req.get("url")
        if not isinstance(url, str) or not url:
            raise ContractError("fetch: missing url")
        method = (req.get("method") or "GET").upper()
        content = req.get("body")
        headers = _parse_headers(req.get("headers"))

        log.debug("custom fetch %s %s", method, url)
        try:
            resp = self._get_client().request(
                method,
                url,
                content=content.encode("utf-8") if isinstance(content, str) else None,
                headers=headers,
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise ContractError(f"fetch {method} {url} failed: {e}") from e

        encoded = base64.b64encode(resp.content).decode("ascii")
        return json.dumps(encoded).encode("utf-8")


__all__ = ["FetchHandler"]
