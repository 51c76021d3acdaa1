"""Image identifier model."""

from __future__ import annotations

from pydantic import ConfigDict, RootModel, field_validator


class Identifier(RootModel[str]):
    """Opaque, immutable token naming a source image.

    The value is kept verbatim. Interpreting it (as a path, URL suffix, etc.)
    is up to the source that resolves it.
    """

    model_config = ConfigDict(frozen=True)

    @field_validator("root")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Identifier must not be blank")
        return value

    @property
    def value(self) -> str:
        return self.root

    def __str__(self) -> str:
        return self.root
