import logging

import requests
from cachetools import TTLCache
from PIL import Image, ImageFile

from har_trackers.config import IMAGE_CONNECT_TIMEOUT, IMAGE_MAX_HEADER_BYTES, IMAGE_READ_TIMEOUT
from har_trackers.models import ImageProbe

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024


def read_dimensions(chunks, max_bytes=IMAGE_MAX_HEADER_BYTES):
    """
    Decode the dimensions of an image from the first chunks of its content.

    Only the header is parsed; reading stops as soon as Pillow knows the size.

    Args:
        chunks: Iterable of bytes
        max_bytes: Give up after this many bytes

    Returns:
        tuple: (width, height), or None if no image header was recognized
    """
    parser = ImageFile.Parser()
    read = 0
    for chunk in chunks:
        if not chunk:
            continue
        parser.feed(chunk)
        if parser.image is not None:
            return parser.image.size
        read += len(chunk)
        if read >= max_bytes:
            break
    return None


class ImageProber:
    """Fetches the header of remote images to know their size in pixels."""

    def __init__(self, connect_timeout=IMAGE_CONNECT_TIMEOUT, read_timeout=IMAGE_READ_TIMEOUT,
                 session=None, max_bytes=IMAGE_MAX_HEADER_BYTES):
        self.timeout = (connect_timeout, read_timeout)
        self.session = session or requests.Session()
        self.max_bytes = max_bytes
        # Successful probes only, the same pixel URL is often embedded by many sites
        self._cache = TTLCache(maxsize=10000, ttl=3600)
        self.fetch_count = 0

    def probe(self, url) -> ImageProbe:
        if url in self._cache:
            width, height = self._cache[url]
            return ImageProbe(url, width=width, height=height)

        self.fetch_count += 1
        logger.debug("Fetching the header of %s", url)
        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                size = read_dimensions(response.iter_content(CHUNK_SIZE), self.max_bytes)
        except requests.RequestException as e:
            return ImageProbe(url, error=f"cannot get the image ({e.__class__.__name__})")
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
            # Pillow raises these for corrupt headers
            return ImageProbe(url, error=f"cannot get the dimensions of the image ({e})")

        if size is None:
            return ImageProbe(url, error="cannot get the dimensions of the image")

        width, height = size
        self._cache[url] = (width, height)
        return ImageProbe(url, width=width, height=height)
