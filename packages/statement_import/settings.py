"""Import configuration.

Fallback defaults (currency, row name, sign convention) are passed explicitly
to every parsing/materialization call through :class:`ImportSettings`; nothing
here is process-wide state. :func:`load_settings` builds an instance from the
environment for entrypoints such as the CLI.
"""

from __future__ import annotations

import os
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import SignageConvention

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


class ImportSettings(BaseModel):
    """Caller-supplied defaults for one import."""

    model_config = ConfigDict(strict=True, extra="forbid", frozen=True, str_strip_whitespace=True)

    default_currency: str = "USD"
    default_row_name: str = "Imported item"
    signage_convention: SignageConvention = Field(
        default=SignageConvention.INFLOWS_POSITIVE, strict=False
    )
    date_format: str = "%Y-%m-%d"

    @field_validator("default_currency")
    @classmethod
    def _currency_code(cls, v: str) -> str:
        code = v.upper()
        if not _CURRENCY_RE.match(code):
            raise ValueError("default_currency must be a 3-letter ISO currency code")
        return code

    @field_validator("default_row_name", "date_format")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must be non-empty")
        return v


def load_settings(**overrides: Any) -> ImportSettings:
    """Return settings from ``STATEMENT_IMPORT_*`` env vars, then ``overrides``.

    ``None`` overrides are ignored so CLI options can be passed straight through.
    """

    values: dict[str, Any] = {}
    env_currency = os.getenv("STATEMENT_IMPORT_DEFAULT_CURRENCY")
    if env_currency:
        values["default_currency"] = env_currency
    env_row_name = os.getenv("STATEMENT_IMPORT_DEFAULT_ROW_NAME")
    if env_row_name:
        values["default_row_name"] = env_row_name
    values.update({k: v for k, v in overrides.items() if v is not None})
    return ImportSettings(**values)


__all__ = ["ImportSettings", "load_settings"]
