"""Client settings: timeout and debug defaults resolved from the environment."""

from __future__ import annotations

import os
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from inklink._http import DEFAULT_TIMEOUT_S
from inklink.errors import ConfigurationError

ENV_PREFIX = "INKLINK_"


def _coerce_bool(v: str) -> bool:
    """Convert string to boolean using common conventions."""
    return v.strip().lower() in {"1", "true", "yes", "on"}


class ClientSettings(BaseModel):
    """Ambient defaults for ``AIClient``.

    Explicit constructor arguments on the client always win over these.
    """

    timeout_s: float = Field(default=DEFAULT_TIMEOUT_S, gt=0)
    debug: bool = Field(default=False)

    model_config = {"frozen": True}

    @field_validator("debug", mode="before")
    @classmethod
    def normalize_debug(cls, v: Any) -> Any:
        """Accept the usual string spellings of a boolean flag."""
        if isinstance(v, str):
            return _coerce_bool(v)
        return v

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> ClientSettings:
        """Resolve settings from ``INKLINK_*`` variables (and ``.env``)."""
        if dotenv:
            load_dotenv()
        raw: dict[str, Any] = {}
        for field_name in cls.model_fields:
            value = os.environ.get(f"{ENV_PREFIX}{field_name.upper()}")
            if value is not None and value.strip():
                raw[field_name] = value.strip()
        try:
            return cls(**raw)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid inklink settings: {e.errors()[0].get('msg', e)}",
                hint="Check INKLINK_TIMEOUT_S (seconds > 0) and INKLINK_DEBUG.",
            ) from e
