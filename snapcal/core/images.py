"""Local image payload validation and content hashing.

Validation runs before any cache, rate-limit or network work so malformed
payloads cost nothing.

Tests:
    - tests/unit/test_images.py
"""

import base64
import binascii
import hashlib
from collections.abc import Collection

from snapcal.core.errors import PayloadValidationError
from snapcal.schemas.request import EncodedImage

DEFAULT_SUPPORTED_TYPES = ("image/jpeg", "image/png", "image/webp")
DEFAULT_MAX_IMAGE_BYTES = 1024 * 1024


def _decoded_size(data: str) -> int | None:
    try:
        padded = data + "=" * (-len(data) % 4)
        return len(base64.b64decode(padded, validate=True))
    except (binascii.Error, ValueError):
        return None


def coerce_image(
    payload: EncodedImage | str,
    supported_types: Collection[str] = DEFAULT_SUPPORTED_TYPES,
    max_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
) -> EncodedImage:
    """Validate a payload and return it as an EncodedImage.

    Raises:
        PayloadValidationError: On a non-image payload, an unsupported media
            type, undecodable base64, an empty image or an oversized image.
    """
    if isinstance(payload, str):
        try:
            image = EncodedImage.from_data_url(payload)
        except ValueError as e:
            raise PayloadValidationError("Invalid image data provided") from e
    elif isinstance(payload, EncodedImage):
        image = payload
    else:
        raise PayloadValidationError("Invalid image data provided")

    if image.media_type not in supported_types:
        raise PayloadValidationError(
            f"Invalid image data provided: unsupported format {image.media_type}"
        )

    size = _decoded_size(image.data)
    if size is None or size == 0:
        raise PayloadValidationError("Invalid image data provided: payload is not valid base64")
    if size > max_bytes:
        raise PayloadValidationError(
            f"Invalid image data provided: image is {size} bytes, limit is {max_bytes}"
        )
    return image


def is_valid_image_payload(
    payload: object,
    supported_types: Collection[str] = DEFAULT_SUPPORTED_TYPES,
    max_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
) -> bool:
    try:
        coerce_image(payload, supported_types, max_bytes)  # type: ignore[arg-type]
    except PayloadValidationError:
        return False
    return True


def content_hash(image: EncodedImage) -> str:
    """Deterministic digest of the image payload, used as a cache key."""
    digest = hashlib.sha256()
    digest.update(image.media_type.encode("ascii"))
    digest.update(b"\0")
    digest.update(image.data.encode("ascii"))
    return digest.hexdigest()
