"""Pydantic configuration contracts for the JSON key-value store."""
from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class StoreOptions(BaseModel):
    """Write policy and formatting for a single store instance."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    deferred_write: bool = Field(
        False,
        validation_alias=AliasChoices("deferred_write", "deferredWrite", "asyncWrite"),
        description="Issue disk writes on a background worker instead of blocking the caller",
    )
    write_on_mutate: bool = Field(
        True,
        validation_alias=AliasChoices("write_on_mutate", "writeOnMutate", "syncOnWrite"),
        description="Sync to disk after every set, delete and clear",
    )
    indent_width: int = Field(
        4,
        ge=0,
        validation_alias=AliasChoices("indent_width", "indentWidth", "jsonSpaces"),
        description="Spaces used to indent the serialized JSON document",
    )

    @classmethod
    def from_env(
        cls,
        prefix: str = "JSONKV_",
        environ: Optional[Mapping[str, str]] = None,
    ) -> "StoreOptions":
        env = os.environ if environ is None else environ
        payload: Dict[str, Any] = {}
        for name in cls.model_fields:
            raw = env.get(f"{prefix}{name.upper()}")
            if raw is not None and raw.strip():
                payload[name] = raw.strip()
        return cls.model_validate(payload)
