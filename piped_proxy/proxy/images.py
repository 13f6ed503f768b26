import asyncio
from io import BytesIO

import PIL.Image

from piped_proxy.errors import TranscodeError

JPEG_CONTENT_TYPE = "image/jpeg"
WEBP_CONTENT_TYPE = "image/webp"
WEBP_QUALITY = 85


def should_transcode(content_type: str, disabled: bool) -> bool:
    return not disabled and content_type == JPEG_CONTENT_TYPE


def jpeg_to_webp(data: bytes, quality: int = WEBP_QUALITY) -> bytes:
    """
    Decode a JPEG fully and re-encode it as lossy WebP.

    Args:
        data: JPEG bytes
        quality: WebP quality (0-100)

    Returns:
        The WebP encoded image

    Raises:
        TranscodeError: if the body is not a decodable JPEG or encoding fails
    """
    output = BytesIO()
    try:
        with PIL.Image.open(BytesIO(data), formats=["JPEG"]) as image:
            image.load()
            if image.mode not in ("RGB", "RGBA"):
                image = image.convert("RGB")
            image.save(output, format="WEBP", quality=quality)
    except (PIL.UnidentifiedImageError, OSError, ValueError) as e:
        raise TranscodeError(f"Failed to transcode image: {e}") from e
    return output.getvalue()


async def transcode_jpeg(data: bytes, quality: int = WEBP_QUALITY) -> bytes:
    """Run the codec off the event loop so other requests keep flowing."""
    return await asyncio.to_thread(jpeg_to_webp, data, quality)
