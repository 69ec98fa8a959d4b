"""Config loading for ThrottleGuard.

Reads `.throttleguard/config.yaml` (or `~/.throttleguard/config.yaml`).
Raises SystemExit on parse errors, a missing `version` field or invalid policy
values. If no config file is found, returns default values (safe to run
without config).

Config search order:
  1. `config_path` argument (if provided — for testing or explicit override)
  2. THROTTLEGUARD_CONFIG environment variable (if set)
  3. `.throttleguard/config.yaml` (working directory — for development)
  4. `~/.throttleguard/config.yaml` (home directory — for production deployments)

Environment variable overrides:
  THROTTLEGUARD_PORT                — overrides server.port
  THROTTLEGUARD_TRUST_FORWARDED_FOR — overrides server.trust_forwarded_for ("true"/"false")

Policies:
  The four built-in policies (general, strict, login, api) start from the
  defaults in throttleguard.constants; a `policies:` entry only needs the keys
  it changes. Any other name defines a custom policy and must give
  `window_ms` and `max_requests`.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Any, Optional

import yaml

from throttleguard.constants import (
    API_MAX_REQUESTS,
    API_MESSAGE,
    API_WINDOW_MS,
    DEFAULT_BCRYPT_ROUNDS,
    DEFAULT_FAILURE_STATUSES,
    GENERAL_MAX_REQUESTS,
    GENERAL_MESSAGE,
    GENERAL_WINDOW_MS,
    LOGIN_MAX_ATTEMPTS,
    LOGIN_MESSAGE,
    LOGIN_WINDOW_MS,
    REAPER_INTERVAL_MS,
    STRICT_MAX_REQUESTS,
    STRICT_MESSAGE,
    STRICT_WINDOW_MS,
)
from throttleguard.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# ─── Validation sets ─────────────────────────────────────────────────────────

VALID_KEY_STRATEGIES: frozenset[str] = frozenset({"ip", "email"})

VALID_COUNTING_MODES: frozenset[str] = frozenset({"all-requests", "outcome-gated"})

DEFAULT_CONFIG_PATHS = [
    ".throttleguard/config.yaml",
    os.path.expanduser("~/.throttleguard/config.yaml"),
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ServerConfig:
    """HTTP binding configuration.

    trust_forwarded_for: key IP policies by the first X-Forwarded-For hop.
                         Enable only behind a proxy that sets the header.
    """

    host: str = "127.0.0.1"
    port: int = 3000
    trust_forwarded_for: bool = False


@dataclass
class ReaperConfig:
    """Expired-record sweeper configuration."""

    interval_ms: int = REAPER_INTERVAL_MS


@dataclass
class AccountsConfig:
    """In-memory account directory configuration."""

    bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS


@dataclass
class PolicyConfig:
    """One throttle policy as written in config.yaml.

    paths:   URL path prefixes the policy guards as middleware. An empty list
             means the policy is only used through the require_quota()
             dependency.
    methods: HTTP methods in scope; empty means all methods.
    """

    window_ms: int
    max_requests: int
    key: str = "ip"                      # "ip" | "email"
    counting: str = "all-requests"       # "all-requests" | "outcome-gated"
    skip_successful_requests: bool = False
    failure_statuses: list[int] = field(
        default_factory=lambda: sorted(DEFAULT_FAILURE_STATUSES)
    )
    message: Optional[str] = None
    paths: list[str] = field(default_factory=lambda: ["/"])
    methods: list[str] = field(default_factory=list)


def default_policies() -> dict[str, PolicyConfig]:
    """The built-in route policies, in middleware order (outermost first)."""
    return {
        "general": PolicyConfig(
            window_ms=GENERAL_WINDOW_MS,
            max_requests=GENERAL_MAX_REQUESTS,
            message=GENERAL_MESSAGE,
            paths=["/"],
        ),
        "strict": PolicyConfig(
            window_ms=STRICT_WINDOW_MS,
            max_requests=STRICT_MAX_REQUESTS,
            skip_successful_requests=True,
            message=STRICT_MESSAGE,
            paths=["/api/users/register"],
            methods=["POST"],
        ),
        "login": PolicyConfig(
            window_ms=LOGIN_WINDOW_MS,
            max_requests=LOGIN_MAX_ATTEMPTS,
            key="email",
            counting="outcome-gated",
            message=LOGIN_MESSAGE,
            paths=["/api/users/login"],
            methods=["POST"],
        ),
        "api": PolicyConfig(
            window_ms=API_WINDOW_MS,
            max_requests=API_MAX_REQUESTS,
            message=API_MESSAGE,
            paths=[],
        ),
    }


@dataclass
class Config:
    """Root configuration object populated from .throttleguard/config.yaml.

    All fields have safe defaults — ThrottleGuard can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    server: ServerConfig = field(default_factory=ServerConfig)
    reaper: ReaperConfig = field(default_factory=ReaperConfig)
    accounts: AccountsConfig = field(default_factory=AccountsConfig)
    policies: dict[str, PolicyConfig] = field(default_factory=default_policies)
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown top-level keys are
        silently ignored.

        Raises:
            SystemExit(1): On an invalid policy entry.
        """
        # ── Server ────────────────────────────────────────────────────────────
        server_raw = raw.get("server") or {}
        server = ServerConfig(
            host=server_raw.get("host", "127.0.0.1"),
            port=server_raw.get("port", 3000),
            trust_forwarded_for=_require_bool(
                "server.trust_forwarded_for",
                server_raw.get("trust_forwarded_for", False),
            ),
        )

        # ── Reaper ────────────────────────────────────────────────────────────
        reaper_raw = raw.get("reaper") or {}
        reaper = ReaperConfig(
            interval_ms=reaper_raw.get("interval_ms", REAPER_INTERVAL_MS),
        )
        if (
            isinstance(reaper.interval_ms, bool)
            or not isinstance(reaper.interval_ms, int)
            or reaper.interval_ms <= 0
        ):
            _config_error(
                f"reaper.interval_ms must be a positive integer, got {reaper.interval_ms!r}"
            )

        # ── Accounts ──────────────────────────────────────────────────────────
        accounts_raw = raw.get("accounts") or {}
        accounts = AccountsConfig(
            bcrypt_rounds=accounts_raw.get("bcrypt_rounds", DEFAULT_BCRYPT_ROUNDS),
        )

        # ── Policies ──────────────────────────────────────────────────────────
        policies = default_policies()
        policies_raw = raw.get("policies") or {}
        if not isinstance(policies_raw, dict):
            _config_error("'policies' must be a mapping of policy name to settings")
        for name, entry in policies_raw.items():
            policies[name] = _parse_policy(name, entry or {}, policies.get(name))

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            server=server,
            reaper=reaper,
            accounts=accounts,
            policies=policies,
            path=path,
        )


# ─── Policy parsing ──────────────────────────────────────────────────────────


def _parse_policy(name: str, raw: Any, base: Optional[PolicyConfig]) -> PolicyConfig:
    """Merge one `policies:` entry onto the built-in defaults for ``name``.

    Raises:
        SystemExit(1): On a non-mapping entry, a custom policy without
                       window_ms/max_requests, or an unknown key/counting value.
    """
    if not isinstance(raw, dict):
        _config_error(f"policies.{name} must be a mapping")

    # Identity policies are usually written with max_attempts.
    max_requests = raw.get("max_requests", raw.get("max_attempts"))

    if base is None:
        if "window_ms" not in raw or max_requests is None:
            _config_error(
                f"policies.{name}: custom policies require 'window_ms' and 'max_requests'"
            )
        base = PolicyConfig(window_ms=raw["window_ms"], max_requests=max_requests)

    policy = PolicyConfig(
        window_ms=raw.get("window_ms", base.window_ms),
        max_requests=max_requests if max_requests is not None else base.max_requests,
        key=raw.get("key", base.key),
        counting=raw.get("counting", base.counting),
        skip_successful_requests=_require_bool(
            f"policies.{name}.skip_successful_requests",
            raw.get("skip_successful_requests", base.skip_successful_requests),
        ),
        failure_statuses=_require_list(
            f"policies.{name}.failure_statuses",
            raw.get("failure_statuses", base.failure_statuses),
            int,
        ),
        message=raw.get("message", base.message),
        paths=_require_list(f"policies.{name}.paths", raw.get("paths", base.paths), str),
        methods=[
            m.upper()
            for m in _require_list(
                f"policies.{name}.methods", raw.get("methods", base.methods), str
            )
        ],
    )

    if policy.key not in VALID_KEY_STRATEGIES:
        _config_error(
            f"policies.{name}: invalid key '{policy.key}'. "
            f"Supported values: {sorted(VALID_KEY_STRATEGIES)}."
        )
    if policy.counting not in VALID_COUNTING_MODES:
        _config_error(
            f"policies.{name}: invalid counting '{policy.counting}'. "
            f"Supported values: {sorted(VALID_COUNTING_MODES)}."
        )
    for prefix in policy.paths:
        if not isinstance(prefix, str) or not prefix.startswith("/"):
            _config_error(f"policies.{name}: paths must start with '/', got {prefix!r}")
    return policy


def _config_error(message: str) -> None:
    print(f"CONFIG ERROR: {message}", file=sys.stderr)
    raise SystemExit(1)


def _require_bool(setting: str, value: Any) -> bool:
    if not isinstance(value, bool):
        _config_error(f"{setting} must be true or false, got {value!r}")
    return value


def _require_list(setting: str, value: Any, item_type: type) -> list:
    """Return ``value`` as a list, exiting unless every item is an ``item_type``.

    A scalar (``methods: POST``) is rejected rather than iterated.
    """
    if not isinstance(value, list) or not all(
        isinstance(item, item_type) and not isinstance(item, bool) for item in value
    ):
        _config_error(
            f"{setting} must be a list of {item_type.__name__} values, got {value!r}"
        )
    return list(value)


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate ThrottleGuard configuration.

    If no file is found at any search path, returns default Config (not an error).
    If a file is found but invalid, writes the error to stderr and raises
    SystemExit(1). Policy values are validated by building every ThrottlePolicy,
    so a zero window or ceiling stops the process at startup.

    Returns:
        Config object with all values populated (file values merged onto defaults).

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field, unsupported
                       version, invalid policy settings, or invalid env overrides.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("THROTTLEGUARD_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found ─────────────────────────────────────────────────
    if found_path is None:
        logger.info("No config file found — using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    # ── Parse config file ─────────────────────────────────────────────────────
    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        msg = (
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "ThrottleGuard refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
        print(msg, file=sys.stderr)
        raise SystemExit(1)
    except OSError as exc:
        msg = f"CONFIG ERROR: Could not read {found_path}: {exc}"
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    if not isinstance(raw, dict):
        if raw is None:
            msg = (
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        else:
            msg = (
                f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
                "The config file must be a YAML dictionary at the top level."
            )
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        msg = (
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    if version not in SUPPORTED_VERSIONS:
        msg = (
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    # ── Fail fast on unusable policy values ──────────────────────────────────
    from throttleguard.errors import ConfigurationError
    from throttleguard.limiter.presets import build_policy  # local import avoids circularity

    for name, policy_config in config.policies.items():
        try:
            build_policy(name, policy_config)
        except ConfigurationError as exc:
            print(f"CONFIG ERROR: {exc}", file=sys.stderr)
            raise SystemExit(1)

    if config.server.trust_forwarded_for:
        logger.warning(
            "X-Forwarded-For is trusted for IP limiting. "
            "Only enable this behind a proxy that overwrites the header."
        )

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        policies=sorted(config.policies),
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Raises:
        SystemExit(1): If THROTTLEGUARD_PORT is set but not a valid integer.
    """
    env_port = os.environ.get("THROTTLEGUARD_PORT")
    if env_port is not None:
        try:
            config.server.port = int(env_port)
        except ValueError:
            msg = (
                f"CONFIG ERROR: THROTTLEGUARD_PORT environment variable is not a valid "
                f"integer: '{env_port}'"
            )
            print(msg, file=sys.stderr)
            raise SystemExit(1)

    env_trust = os.environ.get("THROTTLEGUARD_TRUST_FORWARDED_FOR")
    if env_trust is not None:
        config.server.trust_forwarded_for = env_trust.lower() == "true"
