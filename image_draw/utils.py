import base64
import binascii
import io
import re

from PIL import Image, UnidentifiedImageError

DATA_URI_PREFIX = re.compile(r'^data:image/[\w.+-]+;base64,')


def decode_data_uri(data: str) -> bytes:
    """
    Decode an inline image payload.

    Accepts a base64 data URI (data:image/png;base64,...) or bare base64.
    Raises ValueError when the payload is not valid base64.
    """
    cleaned = DATA_URI_PREFIX.sub("", data.strip())
    if not cleaned:
        raise ValueError("Empty image data")
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid Base64 string: {e}")


def verify_image_bytes(image_bytes: bytes) -> str:
    """Check that the bytes are a readable image and return its format (PNG, JPEG, ...)."""
    if not image_bytes:
        raise ValueError("Invalid or empty image data")
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img.verify()
            return img.format
    except UnidentifiedImageError:
        raise ValueError("Unsupported or corrupted image format")
    except Exception as e:
        raise ValueError(f"Image validation failed: {e}")


def validate_image_payload(name: str, data: str) -> str:
    try:
        return verify_image_bytes(decode_data_uri(data))
    except ValueError as e:
        raise ValueError(f"{name}: {e}")
