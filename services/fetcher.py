"""
Bounded image fetch from Wikimedia.

Every upstream call has a timeout, a small retry budget and a hard byte
ceiling. Nothing from the incoming client request is forwarded upstream.
"""

import logging
import time
from dataclasses import dataclass
from urllib.parse import urlsplit

import requests
from urllib3.exceptions import ReadTimeoutError

import config
from errors import ImageTooLarge, UpstreamError, UpstreamStatus, UpstreamTimeout
from services import http_session

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
IMAGE_ACCEPT = 'image/avif,image/webp,image/*,*/*;q=0.8'


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 2
    base_delay: float = 0.2
    max_delay: float = 5.0

    @property
    def max_attempts(self):
        return self.max_retries + 1

    def should_retry(self, status):
        return 500 <= status < 600

    def delay(self, retry_number):
        """Backoff before retry ``retry_number`` (0-based)."""
        return min(self.base_delay * (2 ** retry_number), self.max_delay)


def default_policy():
    return RetryPolicy(max_retries=min(config.IMAGE_MAX_RETRIES, 2))


@dataclass
class ProxiedImage:
    content: bytes
    content_type: str
    content_length: int = None


def upstream_headers(url):
    parts = urlsplit(url)
    return {
        'User-Agent': config.USER_AGENT,
        'Accept': IMAGE_ACCEPT,
        'Accept-Language': 'ja,en;q=0.9',
        # Wikimedia's hotlink rules look at the Referer
        'Referer': f'{parts.scheme}://{parts.netloc}/',
    }


def _declared_length(resp):
    value = resp.headers.get('Content-Length')
    if value and str(value).isdigit():
        return int(value)
    return None


def _is_read_timeout(exc):
    # iter_content re-raises a stalled body as ConnectionError(ReadTimeoutError)
    if isinstance(exc, requests.Timeout):
        return True
    return any(isinstance(arg, ReadTimeoutError) for arg in exc.args)


def read_bounded(resp, max_bytes):
    """Read the whole body, raising ImageTooLarge before exceeding max_bytes."""
    declared = _declared_length(resp)
    if declared is not None and declared > max_bytes:
        raise ImageTooLarge(f'Image is {declared} bytes (limit {max_bytes})')

    buf = bytearray()
    for chunk in resp.iter_content(CHUNK_SIZE):
        if not chunk:
            continue
        if len(buf) + len(chunk) > max_bytes:
            raise ImageTooLarge(f'Image exceeds {max_bytes} bytes')
        buf.extend(chunk)
    return bytes(buf)


def fetch_image(url, method='GET', max_bytes=None, timeout=None, policy=None, sleep=None):
    """Fetch an image (or just its headers for HEAD) with retry and size cap.

    Raises UpstreamStatus for non-2xx answers, UpstreamTimeout/UpstreamError
    once retries are used up, ImageTooLarge when the body is over the cap.
    """
    max_bytes = config.IMAGE_MAX_BYTES if max_bytes is None else max_bytes
    timeout = config.IMAGE_TIMEOUT if timeout is None else timeout
    policy = policy or default_policy()
    sleep = sleep or time.sleep
    headers = upstream_headers(url)

    last_error = None
    for attempt in range(policy.max_attempts):
        if attempt:
            sleep(policy.delay(attempt - 1))

        try:
            resp = http_session.request(method, url, headers=headers, timeout=timeout,
                                        stream=True, allow_redirects=True)
        except requests.Timeout:
            logger.warning(f'Image fetch timed out (attempt {attempt + 1}): {url}')
            last_error = UpstreamTimeout('Upstream timed out')
            continue
        except requests.RequestException as e:
            logger.warning(f'Image fetch failed (attempt {attempt + 1}): {url}: {e}')
            last_error = UpstreamError('Upstream fetch failed')
            continue

        try:
            status = resp.status_code
            if policy.should_retry(status):
                logger.warning(f'Upstream {status} (attempt {attempt + 1}): {url}')
                last_error = UpstreamStatus(status)
                continue
            if not 200 <= status < 300:
                raise UpstreamStatus(status)

            content_type = resp.headers.get('Content-Type') or 'image/jpeg'
            if method == 'HEAD':
                return ProxiedImage(b'', content_type, _declared_length(resp))
            try:
                content = read_bounded(resp, max_bytes)
            except requests.RequestException as e:
                if _is_read_timeout(e):
                    logger.warning(f'Image body read timed out (attempt {attempt + 1}): {url}')
                    last_error = UpstreamTimeout('Upstream timed out')
                    continue
                logger.warning(f'Image body read failed (attempt {attempt + 1}): {url}: {e}')
                last_error = UpstreamError('Upstream fetch failed')
                continue
            return ProxiedImage(content, content_type, len(content))
        finally:
            resp.close()

    raise last_error or UpstreamError('Upstream fetch failed')
