"""Runtime settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

from compsync.exceptions import ConfigurationError

AmbiguityPolicy = Literal["error", "warn"]

_DEFAULT_FETCH_CONCURRENCY = 8
_DEFAULT_HTTP_TIMEOUT = 30.0
_DEFAULT_MAX_RETRIES = 3


@dataclass(frozen=True)
class Settings:
    """Engine tuning knobs.

    Environment variables:
        COMPSYNC_FETCH_CONCURRENCY  max in-flight requests per scope (default: 8)
        COMPSYNC_HTTP_TIMEOUT       transport timeout in seconds (default: 30)
        COMPSYNC_MAX_RETRIES        attempts on 5xx / timeout (default: 3)
        COMPSYNC_AMBIGUITY_POLICY   error | warn (default: error)
        COMPSYNC_TOKEN              bearer token sent to http scopes
    """

    fetch_concurrency: int = _DEFAULT_FETCH_CONCURRENCY
    http_timeout: float = _DEFAULT_HTTP_TIMEOUT
    max_retries: int = _DEFAULT_MAX_RETRIES
    ambiguity_policy: AmbiguityPolicy = "error"
    token: str | None = None

    @classmethod
    def from_env(cls) -> Settings:
        policy = os.environ.get("COMPSYNC_AMBIGUITY_POLICY", "error").lower()
        if policy not in ("error", "warn"):
            raise ConfigurationError(
                f"COMPSYNC_AMBIGUITY_POLICY must be 'error' or 'warn', got {policy!r}"
            )
        try:
            concurrency = int(
                os.environ.get("COMPSYNC_FETCH_CONCURRENCY", _DEFAULT_FETCH_CONCURRENCY)
            )
            timeout = float(os.environ.get("COMPSYNC_HTTP_TIMEOUT", _DEFAULT_HTTP_TIMEOUT))
            retries = int(os.environ.get("COMPSYNC_MAX_RETRIES", _DEFAULT_MAX_RETRIES))
        except ValueError as exc:
            raise ConfigurationError(f"invalid numeric setting: {exc}") from exc
        if concurrency < 1:
            raise ConfigurationError("COMPSYNC_FETCH_CONCURRENCY must be at least 1")
        return cls(
            fetch_concurrency=concurrency,
            http_timeout=timeout,
            max_retries=max(retries, 1),
            ambiguity_policy=policy,  # type: ignore[arg-type]
            token=os.environ.get("COMPSYNC_TOKEN") or None,
        )
