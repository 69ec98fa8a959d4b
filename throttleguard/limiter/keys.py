"""Limiting-key strategies for ThrottleGuard.

A key strategy maps a ThrottleRequest to the identity a quota is tracked
against. Strategies are plain callables with a ``reads_body`` attribute so the
HTTP layer only parses request bodies for policies that need them.

  - ClientIPKey — connection peer address (or trusted X-Forwarded-For hop).
                  Always yields a key, so IP limiting always applies.
  - EmailKey    — ``email:<lowercased address>`` from the JSON body.
                  Yields None without an email, and the policy is skipped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol

from throttleguard.constants import EMAIL_KEY_PREFIX, UNKNOWN_CLIENT_KEY


@dataclass(frozen=True)
class ThrottleRequest:
    """Framework-neutral view of an incoming request.

    Attributes:
        method:      HTTP method, upper-case.
        path:        URL path.
        client_host: Connection peer address, or None when unknown.
        headers:     Header mapping with lower-cased names.
        body:        Parsed JSON object body, or None (absent, not JSON, not an object).
    """

    method: str = "GET"
    path: str = "/"
    client_host: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[Mapping[str, Any]] = None


class KeyStrategy(Protocol):
    reads_body: bool

    def __call__(self, request: ThrottleRequest) -> Optional[str]: ...


@dataclass(frozen=True)
class ClientIPKey:
    """Key requests by client IP.

    ``X-Forwarded-For`` is only honoured when ``trust_forwarded_for`` is set,
    i.e. when the service runs behind a proxy that overwrites the header.
    Otherwise any client could pick its own limiting key.
    """

    trust_forwarded_for: bool = False
    reads_body: bool = field(default=False, init=False)

    def __call__(self, request: ThrottleRequest) -> Optional[str]:
        if self.trust_forwarded_for:
            forwarded = request.headers.get("x-forwarded-for", "")
            first_hop = forwarded.split(",")[0].strip()
            if first_hop:
                return first_hop
        return request.client_host or UNKNOWN_CLIENT_KEY


@dataclass(frozen=True)
class EmailKey:
    """Key requests by the normalized email address in the JSON body."""

    field_name: str = "email"
    reads_body: bool = field(default=True, init=False)

    def __call__(self, request: ThrottleRequest) -> Optional[str]:
        if request.body is None:
            return None
        value = request.body.get(self.field_name)
        if not isinstance(value, str):
            return None
        email = value.strip().lower()
        if not email:
            return None
        return f"{EMAIL_KEY_PREFIX}{email}"
