"""Environment-driven defaults for a digest run."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

from src.digest.types import (
    DEFAULT_MAX_RESULTS,
    DEFAULT_TIMEFRAME,
    DEFAULT_TIMEFRAME_UNIT,
    DEFAULT_USER_ID,
    DigestRequest,
)
from src.llm.generator import DEFAULT_MODEL

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    """Read an integer env var. Falls back to ``default`` on parse error."""
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning("Invalid %s %r; defaulting to %d", name, raw, default)
        return default


@dataclass
class DigestConfig:
    """Defaults for the digest request and the summarising model."""

    recipient_email: str = ""
    user_id: str = DEFAULT_USER_ID
    timeframe: int = DEFAULT_TIMEFRAME
    timeframe_unit: str = DEFAULT_TIMEFRAME_UNIT
    max_results: int = DEFAULT_MAX_RESULTS
    model: str = DEFAULT_MODEL

    @classmethod
    def from_env(cls) -> DigestConfig:
        """Build DigestConfig from environment variables."""
        return cls(
            recipient_email=os.environ.get("DIGEST_RECIPIENT", ""),
            user_id=os.environ.get("DIGEST_USER_ID", DEFAULT_USER_ID) or DEFAULT_USER_ID,
            timeframe=_env_int("DIGEST_TIMEFRAME", DEFAULT_TIMEFRAME),
            timeframe_unit=os.environ.get("DIGEST_TIMEFRAME_UNIT", DEFAULT_TIMEFRAME_UNIT).strip().lower(),
            max_results=_env_int("DIGEST_MAX_RESULTS", DEFAULT_MAX_RESULTS),
            model=os.environ.get("DIGEST_MODEL", DEFAULT_MODEL),
        )

    def to_request(self, **overrides: Any) -> DigestRequest:
        """Build a validated DigestRequest; ``None`` overrides keep the configured value.

        Raises:
            ValidationError: if the resulting request is invalid.
        """
        values: dict[str, Any] = {
            "recipient_email": self.recipient_email,
            "user_id": self.user_id,
            "timeframe": self.timeframe,
            "timeframe_unit": self.timeframe_unit,
            "max_results": self.max_results,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return DigestRequest(**values)
