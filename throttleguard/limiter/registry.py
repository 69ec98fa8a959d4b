"""Named collection of throttle guards and the routes they cover.

Each guard owns its own WindowStore; the registry only records which path
prefixes and methods a guard is mounted on, and hands the stores to the
Reaper. Registration order is middleware order: the first guard registered
runs outermost.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

from throttleguard.config import Config
from throttleguard.limiter.guard import ThrottleGuard
from throttleguard.limiter.presets import build_policy
from throttleguard.limiter.store import Clock, WindowStore


@dataclass(frozen=True)
class GuardBinding:
    """A guard and its route scope.

    paths:   Path prefixes in scope. Empty: not mounted as middleware.
    methods: Upper-case methods in scope. Empty: every method.
    """

    guard: ThrottleGuard
    paths: tuple[str, ...] = ()
    methods: tuple[str, ...] = ()

    @property
    def mounted(self) -> bool:
        return bool(self.paths)

    def matches(self, method: str, path: str) -> bool:
        if self.methods and method.upper() not in self.methods:
            return False
        return any(_path_matches(prefix, path) for prefix in self.paths)


def _path_matches(prefix: str, path: str) -> bool:
    if prefix == "/":
        return True
    prefix = prefix.rstrip("/")
    return path == prefix or path.startswith(prefix + "/")


class ThrottleRegistry:
    """Ordered name → GuardBinding mapping."""

    def __init__(self) -> None:
        self._bindings: dict[str, GuardBinding] = {}

    def register(
        self,
        guard: ThrottleGuard,
        paths: Sequence[str] = (),
        methods: Sequence[str] = (),
    ) -> ThrottleGuard:
        """Add a guard under its policy name.

        Raises:
            ValueError: If a guard with the same name is already registered.
        """
        if guard.name in self._bindings:
            raise ValueError(f"Throttle policy '{guard.name}' is already registered")
        self._bindings[guard.name] = GuardBinding(
            guard=guard,
            paths=tuple(paths),
            methods=tuple(m.upper() for m in methods),
        )
        return guard

    def guard(self, name: str) -> ThrottleGuard:
        """Return the guard registered as ``name``.

        Raises:
            KeyError: Unknown policy name.
        """
        return self._bindings[name].guard

    def get(self, name: str) -> Optional[ThrottleGuard]:
        binding = self._bindings.get(name)
        return binding.guard if binding else None

    def binding(self, name: str) -> GuardBinding:
        return self._bindings[name]

    def bindings(self) -> list[GuardBinding]:
        return list(self._bindings.values())

    def stores(self) -> list[WindowStore]:
        return [binding.guard.store for binding in self._bindings.values()]

    def __iter__(self) -> Iterator[ThrottleGuard]:
        return (binding.guard for binding in self._bindings.values())

    def __len__(self) -> int:
        return len(self._bindings)

    def __contains__(self, name: object) -> bool:
        return name in self._bindings

    @classmethod
    def from_config(cls, config: Config, clock: Clock = time.time) -> "ThrottleRegistry":
        """Build one guard (with its own store) per configured policy.

        Raises:
            ConfigurationError: On unusable policy values.
        """
        registry = cls()
        for name, policy_config in config.policies.items():
            policy = build_policy(
                name,
                policy_config,
                trust_forwarded_for=config.server.trust_forwarded_for,
            )
            registry.register(
                ThrottleGuard(policy, clock=clock),
                paths=policy_config.paths,
                methods=policy_config.methods,
            )
        return registry
