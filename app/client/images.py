"""Client-side image compression before upload."""

from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError

MAX_DIMENSION = 720
MAX_BYTES = 512 * 1024
MIN_QUALITY = 35


class ImageCompressionError(Exception):
    pass


def compress_image(data: bytes, max_dimension: int = MAX_DIMENSION, max_bytes: int = MAX_BYTES) -> bytes:
    """
    Downscale to ``max_dimension`` on the long edge and re-encode as JPEG.

    Quality steps down until the output fits ``max_bytes``; at MIN_QUALITY
    the result is returned whatever its size.
    """
    try:
        with Image.open(BytesIO(data)) as original:
            image = ImageOps.exif_transpose(original)
            image.thumbnail((max_dimension, max_dimension))
            if image.mode not in ("RGB", "L"):
                image = image.convert("RGB")

            quality = 85
            while True:
                buffer = BytesIO()
                image.save(buffer, format="JPEG", quality=quality, optimize=True)
                if buffer.tell() <= max_bytes or quality <= MIN_QUALITY:
                    return buffer.getvalue()
                quality -= 10
    except (UnidentifiedImageError, OSError) as e:
        raise ImageCompressionError(f"Cannot compress image: {e}") from e
