"""Base model for records exchanged with storage and the orchestrator.

Python attributes are snake_case; the persisted and wire form is camelCase,
matching the JSON layout existing deployments already hold.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def canonical_json(payload: Any) -> str:
    """Compact JSON with no whitespace and non-ASCII left unescaped.

    This is the byte layout of every chunk and manifest object.
    """
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


class WireModel(BaseModel):
    """Immutable model serialised with camelCase keys in field order."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_payload(self, *, exclude_none: bool = False) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=exclude_none)
