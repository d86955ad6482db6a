"""
MediaWiki Action API client (Commons + ja.wikipedia).

Responses are decoded into pydantic models in one step; a response with an
unexpected shape is logged and treated as "no data".
"""

import html
import logging
import re
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, ValidationError

import config
from errors import MediaWikiDecodeError, UpstreamError, UpstreamStatus, UpstreamTimeout
from services import http_session

logger = logging.getLogger(__name__)

PAGE_IMAGE_THUMB_SIZE = 800
DEFAULT_THUMB_WIDTH = 640


class ExtMetadataField(BaseModel):
    value: Any = None


class ImageInfo(BaseModel):
    url: Optional[str] = None
    thumburl: Optional[str] = None
    extmetadata: Dict[str, ExtMetadataField] = {}


class PageThumbnail(BaseModel):
    source: str
    width: Optional[int] = None
    height: Optional[int] = None


class Page(BaseModel):
    title: Optional[str] = None
    imageinfo: List[ImageInfo] = []
    thumbnail: Optional[PageThumbnail] = None


class Query(BaseModel):
    pages: Dict[str, Page] = {}


class QueryResponse(BaseModel):
    query: Optional[Query] = None

    def first_page(self):
        if self.query is None:
            return None
        return next(iter(self.query.pages.values()), None)

    def first_imageinfo(self):
        page = self.first_page()
        if page is None or not page.imageinfo:
            return None
        return page.imageinfo[0]


def decode_query(payload):
    """Decode a raw ``action=query`` JSON payload or raise MediaWikiDecodeError."""
    try:
        return QueryResponse.model_validate(payload)
    except ValidationError as e:
        raise MediaWikiDecodeError(f'Unexpected MediaWiki response: {e.error_count()} errors')


def _api_get(endpoint, params):
    query = {'action': 'query', 'format': 'json', 'redirects': '1'}
    query.update(params)
    try:
        return http_session.get(endpoint, params=query, headers={'Accept': 'application/json'},
                                timeout=config.API_TIMEOUT)
    except requests.Timeout:
        raise UpstreamTimeout(f'MediaWiki API timed out ({endpoint})')
    except requests.RequestException as e:
        raise UpstreamError(f'MediaWiki API request failed: {e}')


def _decode_response(r):
    try:
        payload = r.json()
    except ValueError:
        raise MediaWikiDecodeError('MediaWiki API returned non-JSON body')
    return decode_query(payload)


def _lookup(endpoint, params, what):
    """GET + decode for lookups where a miss of any kind is simply None."""
    r = _api_get(endpoint, params)
    if not r.ok:
        logger.warning(f'MediaWiki {what} lookup returned HTTP {r.status_code}')
        return None
    try:
        return _decode_response(r)
    except MediaWikiDecodeError as e:
        logger.warning(f'MediaWiki {what} lookup: {e}')
        return None


def image_url(file_name):
    """Original upload URL for ``File:<file_name>`` on Commons, or None."""
    data = _lookup(config.COMMONS_API, {
        'prop': 'imageinfo',
        'iiprop': 'url',
        'titles': f'File:{file_name}',
    }, 'imageinfo')
    info = data.first_imageinfo() if data else None
    return info.url if info and info.url else None


def image_thumb_url(file_name, width=DEFAULT_THUMB_WIDTH):
    data = _lookup(config.COMMONS_API, {
        'prop': 'imageinfo',
        'iiprop': 'url',
        'iiurlwidth': str(width),
        'titles': f'File:{file_name}',
    }, 'thumbnail')
    info = data.first_imageinfo() if data else None
    if info is None:
        return None
    return info.thumburl or info.url or None


def strip_html(text):
    text = re.sub(r'<[^>]*>', '', text)
    return re.sub(r'\s+', ' ', html.unescape(text)).strip()


def _ext_value(ext, key):
    field = ext.get(key)
    if field is None or field.value is None:
        return ''
    return str(field.value)


def image_metadata(file_name):
    """Author and license for a Commons file.

    Returns a dict with empty strings when Commons knows nothing about the
    file. Raises UpstreamError when Commons itself fails.
    """
    r = _api_get(config.COMMONS_API, {
        'prop': 'imageinfo',
        'iiprop': 'extmetadata|url',
        'titles': f'File:{file_name}',
    })
    if not r.ok:
        raise UpstreamStatus(r.status_code, f'Commons metadata lookup failed ({r.status_code})')

    try:
        info = _decode_response(r).first_imageinfo()
    except MediaWikiDecodeError as e:
        logger.warning(f'Commons metadata for {file_name!r}: {e}')
        info = None

    ext = info.extmetadata if info else {}
    artist = _ext_value(ext, 'Artist')
    return {
        'author': strip_html(artist) if artist else '',
        'license': _ext_value(ext, 'LicenseShortName'),
        'license_url': _ext_value(ext, 'LicenseUrl'),
    }


def page_image(title, thumb_size=PAGE_IMAGE_THUMB_SIZE):
    """Lead image (thumbnail URL) of a ja.wikipedia article, or None."""
    data = _lookup(config.JAWIKI_API, {
        'prop': 'pageimages',
        'piprop': 'thumbnail',
        'pithumbsize': str(thumb_size),
        'titles': title,
    }, 'pageimages')
    page = data.first_page() if data else None
    if page is None or page.thumbnail is None:
        return None
    return page.thumbnail.source or None
