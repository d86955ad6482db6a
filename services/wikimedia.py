"""
Wikimedia photo references. Recognizes the URL shapes people paste into
the mountain records and turns them into one canonical upload URL.

Shapes:
    upload          https://upload.wikimedia.org/wikipedia/<project>/[thumb/]<h>/<hh>/<name>[/<size>-<name>]
    filepath        https://<lang>.wikipedia.org/wiki/Special:FilePath/<name>
    media_fragment  https://<lang>.wikipedia.org/wiki/<Article>#/media/File:<name>
    file_page       https://commons.wikimedia.org/wiki/File:<name>

Anything else is "unsupported", which callers treat as "no photo".
"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from urllib.parse import quote, unquote, urlsplit

from errors import InvalidProxyParam, PhotoServiceError
from services import mediawiki

logger = logging.getLogger(__name__)

UPLOAD_HOST = 'upload.wikimedia.org'
WIKI_APEXES = ('wikipedia.org', 'wikimedia.org')

SHAPE_UPLOAD = 'upload'
SHAPE_FILEPATH = 'filepath'
SHAPE_MEDIA_FRAGMENT = 'media_fragment'
SHAPE_FILE_PAGE = 'file_page'

FILEPATH_PREFIX = '/wiki/Special:FilePath/'
WIKI_PREFIX = '/wiki/'
MEDIA_FRAGMENT_PREFIX = '/media/'

_FILE_NS_RE = re.compile(r'^(?:File|ファイル):', re.IGNORECASE)


@dataclass(frozen=True)
class CanonicalImageLocator:
    file_name: str
    source_host: str
    shape: str


def _split(url):
    if not isinstance(url, str):
        return None
    raw = url.strip()
    if not raw:
        return None
    if raw.startswith('//'):
        raw = 'https:' + raw
    try:
        parts = urlsplit(raw)
        host = parts.hostname
    except ValueError:
        return None
    if parts.scheme not in ('http', 'https') or not host:
        return None
    return parts


def _is_wiki_host(host):
    return any(host == apex or host.endswith('.' + apex) for apex in WIKI_APEXES)


def strip_file_namespace(name):
    return _FILE_NS_RE.sub('', name, count=1).strip()


def _is_sized_thumb(segments):
    """thumb/<hash dirs...>/<name>/<size>-<name>[.ext]; the last segment must name the file."""
    idx = segments.index('thumb')
    if len(segments) - idx < 3:
        return False
    return '-' + unquote(segments[-2]) in unquote(segments[-1])


def _locator(file_name, host, shape):
    if not file_name:
        return None
    return CanonicalImageLocator(file_name=file_name, source_host=host, shape=shape)


def classify(url):
    """Return a CanonicalImageLocator for a Wikimedia image URL, or None.

    Never raises: malformed strings are simply unsupported.
    """
    parts = _split(url)
    if parts is None:
        return None
    host = parts.hostname
    path = parts.path or ''

    if host == UPLOAD_HOST:
        segments = [s for s in path.split('/') if s]
        if not segments:
            return None
        if 'thumb' in segments:
            if not _is_sized_thumb(segments):
                return None
            encoded = segments[-2]
        else:
            encoded = segments[-1]
        return _locator(unquote(encoded), host, SHAPE_UPLOAD)

    if not _is_wiki_host(host):
        return None

    if path.startswith(FILEPATH_PREFIX):
        name = strip_file_namespace(unquote(path[len(FILEPATH_PREFIX):]))
        return _locator(name, host, SHAPE_FILEPATH)

    if not path.startswith(WIKI_PREFIX):
        return None

    fragment = parts.fragment or ''
    if fragment.startswith(MEDIA_FRAGMENT_PREFIX):
        name = strip_file_namespace(unquote(fragment[len(MEDIA_FRAGMENT_PREFIX):]))
        return _locator(name, host, SHAPE_MEDIA_FRAGMENT)

    title = unquote(path[len(WIKI_PREFIX):])
    if _FILE_NS_RE.match(title):
        return _locator(strip_file_namespace(title), host, SHAPE_FILE_PAGE)
    return None


def to_original_upload(url):
    """Strip the thumbnail part of an upload.wikimedia.org URL. No network.

    .../wikipedia/commons/thumb/a/ab/Foo.jpg/300px-Foo.jpg
        -> https://upload.wikimedia.org/wikipedia/commons/a/ab/Foo.jpg
    """
    parts = _split(url)
    if parts is None or parts.hostname != UPLOAD_HOST:
        return None
    segments = [s for s in (parts.path or '').split('/') if s]
    if not segments:
        return None
    if 'thumb' in segments:
        if not _is_sized_thumb(segments):
            return None
        idx = segments.index('thumb')
        segments = segments[:idx] + segments[idx + 1:-1]
    return f'https://{UPLOAD_HOST}/' + '/'.join(segments)


def resolve_canonical(url, lookup=None):
    """Canonical upload URL for any recognized shape, or None.

    Shapes other than ``upload`` only carry a file name, so they are
    resolved through the Commons imageinfo API. Failures there are a skip.
    """
    locator = classify(url)
    if locator is None:
        return None
    if locator.shape == SHAPE_UPLOAD:
        return to_original_upload(url)

    lookup = lookup or mediawiki.image_url
    try:
        resolved = lookup(locator.file_name)
    except PhotoServiceError as e:
        logger.warning(f'Commons lookup failed for {locator.file_name!r}: {e}')
        return None
    if not resolved:
        return None
    return to_original_upload(resolved) or resolved


def file_page_url(locator):
    host = 'ja.wikipedia.org' if locator.source_host == 'ja.wikipedia.org' else 'commons.wikimedia.org'
    return f'https://{host}/wiki/File:{quote(locator.file_name, safe="")}'


# --- proxy query parameter ---

def encode_proxy_param(url):
    """base64url without padding."""
    return base64.urlsafe_b64encode(url.encode('utf-8')).decode('ascii').rstrip('=')


def decode_proxy_param(value):
    cleaned = (value or '').strip().rstrip('=')
    if not cleaned:
        raise InvalidProxyParam('Invalid encoded url')
    padded = cleaned + '=' * (-len(cleaned) % 4)
    try:
        decoded = base64.b64decode(padded, altchars=b'-_', validate=True)
        return decoded.decode('utf-8')
    except (binascii.Error, ValueError):
        raise InvalidProxyParam('Invalid encoded url')


def proxy_target(url):
    """External URL the proxy should fetch for a stored photo reference.

    Computed without any network call so it is safe on every render.
    """
    locator = classify(url)
    if locator is None:
        return None
    if locator.shape == SHAPE_UPLOAD:
        return to_original_upload(url)
    host = locator.source_host if locator.source_host.endswith('wikipedia.org') else 'commons.wikimedia.org'
    return f'https://{host}{FILEPATH_PREFIX}{quote(locator.file_name, safe="")}'


def proxy_src(url):
    target = proxy_target(url)
    if not target:
        return None
    return f'/api/image?u={encode_proxy_param(target)}'
