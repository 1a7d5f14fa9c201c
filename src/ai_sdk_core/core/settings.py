"""Call settings shared by all entry points."""

from __future__ import annotations

from typing import Any

import pydantic

from . import errors as errors_


class CallSettings(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid", frozen=True)

    max_tokens: int | None = pydantic.Field(default=None, ge=1, strict=True)
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = pydantic.Field(default=None, ge=1, strict=True)
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    stop_sequences: list[str] | None = None
    seed: int | None = pydantic.Field(default=None, strict=True)
    max_retries: int = pydantic.Field(default=2, ge=0, strict=True)
    headers: dict[str, str] | None = None

    def call_options(self) -> dict[str, Any]:
        """Keyword arguments for ``CallOptions`` (everything but retries)."""
        return self.model_dump(exclude={"max_retries"})


def prepare_call_settings(**kwargs: Any) -> CallSettings:
    """Validate raw call settings, dropping unset (``None``) values."""
    values = {k: v for k, v in kwargs.items() if v is not None}
    try:
        return CallSettings.model_validate(values)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        loc = first.get("loc") or ("settings",)
        raise errors_.InvalidArgumentError(
            argument=str(loc[0]),
            message=first["msg"],
            value=first.get("input"),
        ) from exc
