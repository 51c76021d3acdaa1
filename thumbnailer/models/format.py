"""Image formats and the registry that maps format keys to them."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Format(BaseModel):
    """An image format known to the server."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., description="Short key, e.g. 'jpg'")
    name: str = Field(..., description="Display name")
    media_types: tuple[str, ...] = Field(..., description="Media types, preferred first")
    extensions: tuple[str, ...] = Field(default=(), description="Extensions, preferred first")
    pil_format: str | None = Field(
        default=None, description="Pillow format name used to encode/decode"
    )
    supports_transparency: bool = Field(default=False)
    is_raster: bool = Field(default=True)

    @property
    def preferred_media_type(self) -> str:
        return self.media_types[0]

    @property
    def preferred_extension(self) -> str | None:
        return self.extensions[0] if self.extensions else None

    @property
    def is_unknown(self) -> bool:
        return self.key == UNKNOWN.key

    @classmethod
    def get(cls, key: str) -> Format:
        """Look up a format in the global registry (UNKNOWN if absent)."""
        return get_format_registry().get(key)

    def __str__(self) -> str:
        return self.key


UNKNOWN = Format(
    key="unknown",
    name="Unknown",
    media_types=("unknown/unknown",),
)

BUILTIN_FORMATS: tuple[Format, ...] = (
    Format(
        key="jpg",
        name="JPEG",
        media_types=("image/jpeg",),
        extensions=("jpg", "jpeg", "jpe", "jif", "jfif"),
        pil_format="JPEG",
    ),
    Format(
        key="png",
        name="PNG",
        media_types=("image/png",),
        extensions=("png",),
        pil_format="PNG",
        supports_transparency=True,
    ),
    Format(
        key="gif",
        name="GIF",
        media_types=("image/gif",),
        extensions=("gif",),
        pil_format="GIF",
        supports_transparency=True,
    ),
    Format(
        key="webp",
        name="WebP",
        media_types=("image/webp",),
        extensions=("webp",),
        pil_format="WEBP",
        supports_transparency=True,
    ),
    Format(
        key="tif",
        name="TIFF",
        media_types=("image/tiff",),
        extensions=("tif", "tiff", "ptif", "tf8"),
        pil_format="TIFF",
        supports_transparency=True,
    ),
    Format(
        key="bmp",
        name="BMP",
        media_types=("image/bmp", "image/x-ms-bmp"),
        extensions=("bmp", "dib"),
        pil_format="BMP",
    ),
    Format(
        key="svg",
        name="Scalable Vector Graphics",
        media_types=("image/svg+xml",),
        extensions=("svg",),
        supports_transparency=True,
        is_raster=False,
    ),
)


class FormatRegistry:
    """Registry of formats, addressable by key, extension or media type."""

    def __init__(self, formats: tuple[Format, ...] | list[Format] = BUILTIN_FORMATS) -> None:
        self._formats: dict[str, Format] = {}
        for fmt in formats:
            self.register(fmt)

    def register(self, fmt: Format) -> None:
        """Add or replace a format."""
        self._formats[fmt.key.lower()] = fmt

    def get(self, key: str) -> Format:
        """Get a format by key, returning UNKNOWN for unrecognized keys."""
        return self._formats.get(key.strip().lower(), UNKNOWN)

    def for_extension(self, extension: str) -> Format:
        ext = extension.lstrip(".").lower()
        for fmt in self._formats.values():
            if ext in fmt.extensions:
                return fmt
        return UNKNOWN

    def for_media_type(self, media_type: str) -> Format:
        media_type = media_type.split(";")[0].strip().lower()
        for fmt in self._formats.values():
            if media_type in fmt.media_types:
                return fmt
        return UNKNOWN

    def for_pil_format(self, pil_format: str | None) -> Format:
        if not pil_format:
            return UNKNOWN
        for fmt in self._formats.values():
            if fmt.pil_format == pil_format.upper():
                return fmt
        return UNKNOWN

    def all_formats(self) -> list[Format]:
        """All registered formats, sorted by key."""
        return sorted(self._formats.values(), key=lambda f: f.key)

    def __contains__(self, key: str) -> bool:
        return key.strip().lower() in self._formats


_registry: FormatRegistry | None = None


def get_format_registry() -> FormatRegistry:
    """Get or create the global format registry."""
    global _registry
    if _registry is None:
        _registry = FormatRegistry()
    return _registry
