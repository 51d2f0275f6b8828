"""
Runtime configuration for the cardtable service.

Values come from keyword arguments, or from ``CARDTABLE_*`` environment
variables via `ServiceConfig.from_env`.
"""

import os
from typing import Any, Callable, Dict, Mapping, Optional

ENV_PREFIX = "CARDTABLE_"


class ServiceConfig:
    def __init__(
        self,
        min_players: int = 1,
        max_players: int = 10,
        invitation_timeout_seconds: float = 300,
        max_invitation_timeout_seconds: float = 3600,
        invitation_retention_seconds: float = 3600,
        sweep_interval_seconds: float = 60,
        rate_limit_requests: int = 10,
        rate_limit_window_seconds: float = 60,
        host: str = "localhost",
        port: int = 8765,
        log_level: str = "INFO",
    ):
        if min_players < 1:
            raise ValueError(f"min_players must be at least 1, got {min_players}")
        if max_players < min_players:
            raise ValueError(
                f"max_players ({max_players}) must not be below min_players ({min_players})"
            )
        if invitation_timeout_seconds <= 0:
            raise ValueError("invitation_timeout_seconds must be positive")
        if max_invitation_timeout_seconds < invitation_timeout_seconds:
            raise ValueError(
                "max_invitation_timeout_seconds must not be below invitation_timeout_seconds"
            )
        if rate_limit_requests < 1 or rate_limit_window_seconds <= 0:
            raise ValueError("rate limit must allow at least one request per window")
        if invitation_retention_seconds < 0 or sweep_interval_seconds < 0:
            raise ValueError("invitation_retention_seconds and sweep_interval_seconds must not be negative")

        self.min_players = min_players
        self.max_players = max_players
        self.invitation_timeout_seconds = invitation_timeout_seconds
        self.max_invitation_timeout_seconds = max_invitation_timeout_seconds
        # How long answered or expired invitations are kept before cleanup.
        self.invitation_retention_seconds = invitation_retention_seconds
        # 0 disables the background sweep; expiry is still applied on read.
        self.sweep_interval_seconds = sweep_interval_seconds
        self.rate_limit_requests = rate_limit_requests
        self.rate_limit_window_seconds = rate_limit_window_seconds
        self.host = host
        self.port = port
        self.log_level = log_level

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServiceConfig":
        """
        Build a config from ``CARDTABLE_<FIELD>`` variables.

        Unset variables keep their defaults. Unparseable values raise
        ValueError so a misconfigured server fails at start-up.
        """
        environ = os.environ if environ is None else environ
        kwargs: Dict[str, Any] = {}
        for name, parse in _FIELDS.items():
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is None or raw == "":
                continue
            try:
                kwargs[name] = parse(raw)
            except ValueError as exc:
                raise ValueError(
                    f"Invalid value for {ENV_PREFIX}{name.upper()}: {raw!r}"
                ) from exc
        return cls(**kwargs)

    def to_dict(self) -> dict:
        """Convert the config to a dictionary for logging."""
        return {name: getattr(self, name) for name in _FIELDS}

    def __repr__(self) -> str:
        return f"ServiceConfig({self.to_dict()!r})"


_FIELDS: Dict[str, Callable[[str], Any]] = {
    "min_players": int,
    "max_players": int,
    "invitation_timeout_seconds": float,
    "max_invitation_timeout_seconds": float,
    "invitation_retention_seconds": float,
    "sweep_interval_seconds": float,
    "rate_limit_requests": int,
    "rate_limit_window_seconds": float,
    "host": str,
    "port": int,
    "log_level": str.upper,
}
