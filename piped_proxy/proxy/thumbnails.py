import logging

import httpx

from piped_proxy.proxy.hosts import THUMBNAIL_HOST
from piped_proxy.utils.exception_logging import log_exception_with_details

logger = logging.getLogger("uvicorn.error")

MAXRES_SUFFIX = "maxres.jpg"

# Best first; mqdefault exists for every video
THUMBNAIL_CANDIDATES = (
    "maxresdefault.jpg",
    "sddefault.jpg",
    "hqdefault.jpg",
    "mqdefault.jpg",
)
FALLBACK_THUMBNAIL = "mqdefault.jpg"


def wants_best_thumbnail(path: str) -> bool:
    return path.endswith(MAXRES_SUFFIX)


async def best_thumbnail_path(client: httpx.AsyncClient, path: str) -> str:
    """
    Pick the highest quality thumbnail that exists for a ``.../maxres.jpg`` path.

    Each candidate is probed with a HEAD request against the thumbnail host in
    order; the first answering 200 wins. Probe errors count as a miss, and if
    nothing answers 200 the ``mqdefault.jpg`` path is returned unchecked.
    """
    for candidate in THUMBNAIL_CANDIDATES:
        candidate_path = path.replace(MAXRES_SUFFIX, candidate, 1)
        try:
            response = await client.head(f"https://{THUMBNAIL_HOST}{candidate_path}")
        except httpx.HTTPError as e:
            log_exception_with_details(
                logger, "[Thumbnail] Probe failed", e, level=logging.DEBUG
            )
            continue
        if response.status_code == 200:
            logger.debug(f"[Thumbnail] Using {candidate} for {path}")
            return candidate_path

    logger.debug(f"[Thumbnail] No candidate confirmed for {path}, using {FALLBACK_THUMBNAIL}")
    return path.replace(MAXRES_SUFFIX, FALLBACK_THUMBNAIL, 1)
