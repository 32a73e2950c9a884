"""Image preparation before upload and analysis."""

import base64
import io
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError


@dataclass
class ImageCompressor:
    """Downscale photos to a bounded JPEG."""

    max_dimension: int = 800
    quality: int = 70

    def compress(self, image_bytes: bytes) -> bytes:
        """Return a JPEG no larger than `max_dimension` on its longest side.

        Bytes that Pillow cannot decode, or refuses as a decompression bomb, are
        returned unchanged.
        """
        try:
            with Image.open(io.BytesIO(image_bytes)) as source:
                image = ImageOps.exif_transpose(source)
                image.thumbnail((self.max_dimension, self.max_dimension))
                if image.mode != "RGB":
                    image = image.convert("RGB")
                buffer = io.BytesIO()
                image.save(buffer, format="JPEG", quality=self.quality, optimize=True)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
            return image_bytes
        return buffer.getvalue()


def to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
