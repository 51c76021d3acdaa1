"""Image operations and the immutable operation list.

Operations form a closed tagged union discriminated by ``kind``. They only
describe a transform; executing them is the processor's job.
"""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from thumbnailer.models.format import Format
from thumbnailer.models.identifier import Identifier


class ScaleMode(str, Enum):
    """How a scale fits the requested width and height."""

    ASPECT_FIT_WIDTH = "aspect_fit_width"
    ASPECT_FIT_HEIGHT = "aspect_fit_height"
    ASPECT_FIT_INSIDE = "aspect_fit_inside"
    NON_ASPECT_FILL = "non_aspect_fill"


class CropToSquare(BaseModel):
    """Crop to the largest centered square that fits the image."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["crop_to_square"] = "crop_to_square"


class ScaleByPixels(BaseModel):
    """Scale to a pixel size according to a fit mode."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["scale_by_pixels"] = "scale_by_pixels"
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    mode: ScaleMode = ScaleMode.ASPECT_FIT_INSIDE

    def target_size(self, width: int, height: int) -> tuple[int, int]:
        """Resulting size when applied to an image of the given size."""
        if self.mode == ScaleMode.NON_ASPECT_FILL:
            return self.width, self.height
        if self.mode == ScaleMode.ASPECT_FIT_WIDTH:
            ratio = self.width / width
        elif self.mode == ScaleMode.ASPECT_FIT_HEIGHT:
            ratio = self.height / height
        else:
            ratio = min(self.width / width, self.height / height)
        return max(1, round(width * ratio)), max(1, round(height * ratio))


class Encode(BaseModel):
    """Encode the result into a format."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["encode"] = "encode"
    format: Format


Operation = Annotated[
    Union[CropToSquare, ScaleByPixels, Encode],
    Field(discriminator="kind"),
]


class OperationList(BaseModel):
    """Ordered, immutable sequence of operations bound to one identifier."""

    model_config = ConfigDict(frozen=True)

    identifier: Identifier
    operations: tuple[Operation, ...] = ()

    @model_validator(mode="after")
    def _single_encode(self) -> OperationList:
        encodes = [op for op in self.operations if isinstance(op, Encode)]
        if len(encodes) > 1:
            raise ValueError("An operation list may contain only one Encode operation")
        return self

    @classmethod
    def builder(cls) -> OperationListBuilder:
        return OperationListBuilder()

    @property
    def encode(self) -> Encode | None:
        for op in self.operations:
            if isinstance(op, Encode):
                return op
        return None

    @property
    def output_format(self) -> Format | None:
        encode = self.encode
        return encode.format if encode else None

    def cache_key(self) -> str:
        """Deterministic digest of the identifier and operations.

        Two structurally equal lists always produce the same key.
        """
        payload = self.model_dump_json()
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def __len__(self) -> int:
        return len(self.operations)


class OperationListBuilder:
    """Builder for OperationList."""

    def __init__(self) -> None:
        self._identifier: Identifier | None = None
        self._operations: list[CropToSquare | ScaleByPixels | Encode] = []

    def with_identifier(self, identifier: Identifier) -> OperationListBuilder:
        self._identifier = identifier
        return self

    def with_operations(
        self, *operations: CropToSquare | ScaleByPixels | Encode
    ) -> OperationListBuilder:
        self._operations.extend(operations)
        return self

    def build(self) -> OperationList:
        if self._identifier is None:
            raise ValueError("An operation list requires an identifier")
        return OperationList(
            identifier=self._identifier,
            operations=tuple(self._operations),
        )
