# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Raster image encoders used by ``Message.add_image``.

Each supported format is described by an ``ImageEncoder`` that knows its
MIME type, the file extension appended to attachment names and how to turn a
decoded Pillow image into bytes. Which encoders are usable depends on the
codecs compiled into the installed Pillow build; ``supported_formats()``
reports them.

Example:
    Encoding an image by hand::

        from PIL import Image
        from async_mailgun.images import ImageFormat, encoder_for

        encoder = encoder_for(ImageFormat.PNG)
        data = encoder.encode(Image.new("RGB", (16, 16)))
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from PIL import Image, features

from async_mailgun.errors import ImageEncodingError, UnsupportedOperationError


class ImageFormat(str, Enum):
    """Raster formats an image attachment can be encoded to.

    JPEG is sent as ``image/jpeg`` with a ``.jpeg`` extension and JPEG 2000
    as ``image/jp2`` with a ``.jp2`` extension.
    """

    PNG = "png"
    JPEG = "jpeg"
    BMP = "bmp"
    GIF = "gif"
    TIFF = "tiff"
    JPEG2000 = "jpeg2000"


@dataclass(frozen=True)
class ImageEncoder:
    """Encoder for one raster format.

    Attributes:
        image_format: The format this encoder produces.
        mime_type: MIME type sent with the attachment part.
        file_extension: Extension appended to attachment names (without dot).
        pillow_format: Format name understood by ``PIL.Image.save``.
        codec: Pillow codec required at runtime, or None for built-in writers.
        rgb_only: Convert the image to RGB before saving when its mode
            cannot be written directly.
        options: Extra keyword arguments forwarded to ``Image.save``.
    """

    image_format: ImageFormat
    mime_type: str
    file_extension: str
    pillow_format: str
    codec: str | None = None
    rgb_only: bool = False
    options: dict[str, Any] = field(default_factory=dict)

    @property
    def available(self) -> bool:
        """Whether the installed Pillow build can write this format."""
        return self.codec is None or bool(features.check_codec(self.codec))

    def encode(self, image: Image.Image) -> bytes:
        """Encode a decoded image into this format.

        Raises:
            ImageEncodingError: If Pillow fails to write the image.
        """
        if self.rgb_only and image.mode not in ("L", "RGB", "CMYK"):
            image = image.convert("RGB")
        buffer = io.BytesIO()
        try:
            image.save(buffer, format=self.pillow_format, **self.options)
        except (OSError, ValueError, KeyError) as exc:
            raise ImageEncodingError(
                f"Cannot encode image as {self.image_format.value}: {exc}"
            ) from exc
        return buffer.getvalue()


_ENCODERS: dict[ImageFormat, ImageEncoder] = {
    ImageFormat.PNG: ImageEncoder(ImageFormat.PNG, "image/png", "png", "PNG", codec="zlib"),
    ImageFormat.JPEG: ImageEncoder(
        ImageFormat.JPEG, "image/jpeg", "jpeg", "JPEG",
        codec="jpg", rgb_only=True, options={"quality": 90},
    ),
    ImageFormat.BMP: ImageEncoder(ImageFormat.BMP, "image/bmp", "bmp", "BMP"),
    ImageFormat.GIF: ImageEncoder(ImageFormat.GIF, "image/gif", "gif", "GIF"),
    ImageFormat.TIFF: ImageEncoder(ImageFormat.TIFF, "image/tiff", "tiff", "TIFF"),
    ImageFormat.JPEG2000: ImageEncoder(
        ImageFormat.JPEG2000, "image/jp2", "jp2", "JPEG2000", codec="jpg_2000",
    ),
}


def supported_formats() -> list[ImageFormat]:
    """Return the formats the installed Pillow build can encode."""
    return [fmt for fmt, encoder in _ENCODERS.items() if encoder.available]


def encoder_for(image_format: ImageFormat | str) -> ImageEncoder:
    """Look up the encoder for a format.

    Args:
        image_format: An ``ImageFormat`` or its string value ("png", "jpeg", ...).

    Returns:
        The matching ``ImageEncoder``.

    Raises:
        UnsupportedOperationError: If the format name is unknown or Pillow
            lacks the codec for the format.
    """
    try:
        encoder = _ENCODERS[ImageFormat(image_format)]
    except ValueError as exc:
        raise UnsupportedOperationError(f"Unknown image format: {image_format!r}") from exc
    if not encoder.available:
        raise UnsupportedOperationError(
            f"Image format {encoder.image_format.value} is not supported by the installed Pillow build"
        )
    return encoder
