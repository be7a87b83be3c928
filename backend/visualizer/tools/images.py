"""Data-URL parsing and image sniffing with Pillow."""

import base64
import binascii
import io

from PIL import Image, UnidentifiedImageError

_FORMAT_MIME = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "HEIF": "image/heic",
}

_MIME_EXT = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/heic": "heic",
}


def parse_data_url(data_url: str) -> tuple[str, bytes]:
    """Split `data:<mime>;base64,<payload>` into (mime, bytes).

    A bare base64 string is accepted and treated as JPEG. Raises ValueError on
    anything that doesn't decode.
    """
    if data_url.startswith("data:"):
        header, sep, payload = data_url.partition(",")
        if not sep or ";base64" not in header:
            raise ValueError("Expected a base64 data URL")
        mime_type = header[5:].split(";")[0] or "image/jpeg"
    else:
        mime_type, payload = "image/jpeg", data_url

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Image payload is not valid base64") from exc
    if not data:
        raise ValueError("Image payload is empty")
    return mime_type, data


def sniff_image(data: bytes) -> str:
    """Return the MIME type of an encoded image, or raise ValueError if it isn't one."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ValueError("Image could not be decoded") from exc
    return _FORMAT_MIME.get(fmt or "", "image/jpeg")


def decode_image_data_url(data_url: str) -> tuple[str, bytes]:
    """Parse a data URL and check the payload is really an image.

    The sniffed format wins over the declared MIME type.
    """
    _, data = parse_data_url(data_url)
    return sniff_image(data), data


def extension_for(mime_type: str) -> str:
    return _MIME_EXT.get(mime_type, "png")
