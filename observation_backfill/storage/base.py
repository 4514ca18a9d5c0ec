"""Abstract interface for the object storage holding readings, chunks and manifests."""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, Field


class ListPage(BaseModel):
    """One page of an object listing."""

    keys: list[str] = Field(default_factory=list)
    next_token: str | None = Field(
        default=None,
        description="Continuation token for the next page; ``None`` on the last page.",
    )


class ObjectStorage(Protocol):
    """Structural interface for object storage backends."""

    def list_objects(self, bucket: str, prefix: str, continuation_token: str | None = None) -> ListPage:
        """Return one page of keys under *prefix*."""
        ...

    def get_object(self, bucket: str, key: str) -> bytes:
        """Return the object body.

        Raises
        ------
        ObjectNotFoundError
            If no object exists at *key*.
        """
        ...

    def put_object(self, bucket: str, key: str, body: bytes, content_type: str = "application/json") -> None:
        """Create or overwrite the object at *key*."""
        ...
