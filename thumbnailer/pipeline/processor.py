"""Image processor using Pillow and resvg."""

from __future__ import annotations

import re
from io import BytesIO

import resvg_py
from PIL import Image, ImageOps, UnidentifiedImageError
from pydantic import BaseModel, ConfigDict

from thumbnailer.config import Configuration
from thumbnailer.exceptions import ImageProcessingError, UnsupportedFormatError
from thumbnailer.models.format import Format, FormatRegistry, get_format_registry
from thumbnailer.models.operations import (
    CropToSquare,
    Encode,
    OperationList,
    ScaleByPixels,
)


class Info(BaseModel):
    """Dimensions and format of a source image."""

    model_config = ConfigDict(frozen=True)

    width: int
    height: int
    format: Format


class ImageProcessor:
    """Executes operation lists against source image bytes."""

    def __init__(
        self,
        jpg_quality: int = 80,
        background_color: str = "#ffffff",
        registry: FormatRegistry | None = None,
    ) -> None:
        self.jpg_quality = jpg_quality
        self.background_color = background_color
        self.registry = registry or get_format_registry()

    @classmethod
    def from_config(cls, config: Configuration) -> ImageProcessor:
        return cls(
            jpg_quality=config.get_int("processor.jpg.quality", 80) or 80,
            background_color=config.get_string("processor.background_color", "#ffffff")
            or "#ffffff",
        )

    def read_info(self, data: bytes, format_hint: Format) -> Info:
        """Read the size and format of an image without decoding its pixels."""
        if format_hint.key == "svg":
            width, height = self._svg_size(data.decode("utf-8", errors="replace"))
            return Info(width=width, height=height, format=format_hint)

        try:
            with Image.open(BytesIO(data)) as image:
                fmt = self.registry.for_pil_format(image.format)
                width, height = image.size
                orientation = image.getexif().get(0x0112, 1)
        except (UnidentifiedImageError, OSError) as e:
            raise ImageProcessingError(f"Cannot identify image: {e}") from e

        # EXIF orientations 5-8 rotate by 90 degrees
        if orientation in (5, 6, 7, 8):
            width, height = height, width
        return Info(width=width, height=height, format=fmt if not fmt.is_unknown else format_hint)

    def process(self, data: bytes, info: Info, operation_list: OperationList) -> bytes:
        """Apply every operation in order and return the encoded result."""
        image = self._decode(data, info, operation_list)
        output: bytes | None = None

        for op in operation_list.operations:
            if isinstance(op, CropToSquare):
                image = self._crop_to_square(image)
            elif isinstance(op, ScaleByPixels):
                image = self._scale(image, op)
            elif isinstance(op, Encode):
                output = self._encode(image, op.format)

        if output is None:
            output = self._encode(image, info.format)
        return output

    def _decode(self, data: bytes, info: Info, operation_list: OperationList) -> Image.Image:
        if info.format.key == "svg":
            return self._render_svg(data, info, operation_list)

        try:
            image = Image.open(BytesIO(data))
            image = ImageOps.exif_transpose(image)
            image.load()
        except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
            raise ImageProcessingError(f"Cannot decode image: {e}") from e
        return image

    def _render_svg(self, data: bytes, info: Info, operation_list: OperationList) -> Image.Image:
        """Render SVG large enough that later scaling only ever shrinks it."""
        target = max(
            (max(op.width, op.height) for op in operation_list.operations
             if isinstance(op, ScaleByPixels)),
            default=0,
        )
        ratio = max(1.0, target / min(info.width, info.height))
        try:
            png_data = resvg_py.svg_to_bytes(
                svg_string=data.decode("utf-8"),
                width=round(info.width * ratio),
                height=round(info.height * ratio),
            )
            image = Image.open(BytesIO(bytes(png_data)))
            image.load()
        except Exception as e:
            raise ImageProcessingError(f"Cannot render SVG: {e}") from e
        return image

    @staticmethod
    def _svg_size(svg_string: str) -> tuple[int, int]:
        """Intrinsic size of an SVG from its width/height or viewBox.

        Raises:
            ImageProcessingError: If no size is given or it is under one pixel
        """
        size: tuple[int, int] | None = None
        width_match = re.search(r'<svg[^>]*\swidth=["\']([\d.]+)(?:px)?["\']', svg_string)
        height_match = re.search(r'<svg[^>]*\sheight=["\']([\d.]+)(?:px)?["\']', svg_string)
        viewbox_match = re.search(r'viewBox=["\']([^"\']+)["\']', svg_string)
        try:
            if width_match and height_match:
                size = int(float(width_match.group(1))), int(float(height_match.group(1)))
            elif viewbox_match:
                parts = viewbox_match.group(1).replace(",", " ").split()
                if len(parts) == 4:
                    size = int(float(parts[2])), int(float(parts[3]))
        except ValueError:
            size = None

        if size is None:
            raise ImageProcessingError("SVG has neither width/height nor a usable viewBox")
        if min(size) < 1:
            raise ImageProcessingError(f"SVG size {size[0]}x{size[1]} is smaller than one pixel")
        return size

    @staticmethod
    def _crop_to_square(image: Image.Image) -> Image.Image:
        side = min(image.width, image.height)
        left = (image.width - side) // 2
        top = (image.height - side) // 2
        return image.crop((left, top, left + side, top + side))

    @staticmethod
    def _scale(image: Image.Image, op: ScaleByPixels) -> Image.Image:
        size = op.target_size(image.width, image.height)
        if size == image.size:
            return image
        return image.resize(size, Image.Resampling.LANCZOS)

    def _encode(self, image: Image.Image, fmt: Format) -> bytes:
        if fmt.is_unknown or fmt.pil_format is None:
            raise UnsupportedFormatError(f"No encoder available for format: {fmt.key}")

        has_alpha = image.mode in ("RGBA", "LA", "PA") or (
            image.mode == "P" and "transparency" in image.info
        )
        if has_alpha and not fmt.supports_transparency:
            image = image.convert("RGBA")
            background = Image.new("RGB", image.size, self._hex_to_rgb(self.background_color))
            background.paste(image, (0, 0), image)
            image = background

        output = BytesIO()
        try:
            if fmt.pil_format == "JPEG":
                if image.mode != "RGB":
                    image = image.convert("RGB")
                image.save(output, format="JPEG", quality=self.jpg_quality, optimize=True)
            elif fmt.pil_format == "PNG":
                if image.mode not in ("RGBA", "RGB", "L", "LA", "P"):
                    image = image.convert("RGBA")
                image.save(output, format="PNG", optimize=True)
            else:
                if image.mode not in ("RGBA", "RGB", "L", "P"):
                    image = image.convert("RGBA" if fmt.supports_transparency else "RGB")
                image.save(output, format=fmt.pil_format)
        except (OSError, KeyError, ValueError) as e:
            raise ImageProcessingError(f"Cannot encode {fmt.key}: {e}") from e
        return output.getvalue()

    @staticmethod
    def _hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
        """Convert hex color to RGB tuple."""
        hex_color = hex_color.lstrip("#")
        return tuple(int(hex_color[i : i + 2], 16) for i in (0, 2, 4))  # type: ignore[return-value]
