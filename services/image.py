"""
Image proxy. The browser only ever talks to us; we fetch from Wikimedia
with our own headers, size cap and retry budget, and hand back bytes that
downstream caches may keep forever.
"""

import logging
from urllib.parse import parse_qs, urlsplit

from flask import Blueprint, Response, request, jsonify

import config
from errors import UpstreamStatus
from services import mediawiki
from services.cache import cached_response, cache_response
from services.fetcher import fetch_image
from services.ratelimit import FixedWindowLimiter, rate_limited
from services.wikimedia import (
    FILEPATH_PREFIX, UPLOAD_HOST, classify, decode_proxy_param, file_page_url,
)

logger = logging.getLogger(__name__)

image_bp = Blueprint('image', __name__)

limiter = FixedWindowLimiter(config.RATE_LIMIT_REQUESTS, config.RATE_LIMIT_WINDOW)

IMMUTABLE_CACHE = 'public, max-age=31536000, immutable'
META_CACHE_TTL = 86400


def is_allowed_url(raw):
    """Only Wikimedia image locations may be proxied."""
    try:
        parts = urlsplit(raw)
        host = parts.hostname or ''
    except ValueError:
        return False
    if parts.scheme != 'https':
        return False
    path = parts.path or ''
    if host == UPLOAD_HOST:
        return path.startswith('/wikipedia/')
    if host == 'commons.wikimedia.org':
        return path.startswith(FILEPATH_PREFIX)
    if host.endswith('.wikipedia.org'):
        return path.startswith('/wiki/')
    return False


def _requested_url():
    """Target URL from ``u`` (base64url) or ``url`` (raw)."""
    encoded = request.args.get('u')
    if encoded:
        return decode_proxy_param(encoded)
    return request.args.get('url', '')


def _filepath_fallback(raw):
    """Commons API thumbnail URL for a Special:FilePath link that 404'd."""
    parts = urlsplit(raw)
    if parts.hostname != 'commons.wikimedia.org' or not parts.path.startswith(FILEPATH_PREFIX):
        return None
    locator = classify(raw)
    if locator is None:
        return None
    width = parse_qs(parts.query).get('width', [''])[0]
    width = int(width) if width.isdigit() else mediawiki.DEFAULT_THUMB_WIDTH
    return mediawiki.image_thumb_url(locator.file_name, width)


def _image_response(image, head=False, fallback=False):
    resp = Response(b'' if head else image.content, status=200, content_type=image.content_type)
    if head and image.content_length is not None:
        resp.headers['Content-Length'] = str(image.content_length)
    resp.headers['Cache-Control'] = IMMUTABLE_CACHE
    resp.headers['X-Content-Type-Options'] = 'nosniff'
    resp.headers['Cross-Origin-Resource-Policy'] = 'same-origin'
    if fallback:
        resp.headers['X-Proxy-Fallback'] = 'commons-api'
    return resp


@image_bp.route('/api/image', methods=['GET', 'HEAD'])
@rate_limited(limiter)
def api_image():
    raw = _requested_url()
    if not raw:
        return jsonify({'error': 'Missing url'}), 400
    if not is_allowed_url(raw):
        return jsonify({'error': 'URL not allowed'}), 400

    head = request.method == 'HEAD'
    method = 'HEAD' if head else 'GET'
    try:
        return _image_response(fetch_image(raw, method=method), head=head)
    except UpstreamStatus as e:
        if e.upstream_status != 404:
            raise
        fallback_url = _filepath_fallback(raw)
        if not fallback_url:
            raise
        logger.info(f'FilePath 404, retrying via Commons API: {raw}')
        return _image_response(fetch_image(fallback_url, method=method), head=head, fallback=True)


@image_bp.route('/api/image/meta')
@rate_limited(limiter)
def api_image_meta():
    raw = _requested_url()
    if not raw:
        return jsonify({'error': 'Missing url'}), 400

    locator = classify(raw)
    if locator is None:
        return jsonify({'error': 'Unsupported url'}), 400

    cache_key = f'meta:{locator.source_host}:{locator.file_name}'
    cached = cached_response(cache_key, ttl=META_CACHE_TTL)
    if cached:
        return jsonify(cached)

    meta = mediawiki.image_metadata(locator.file_name)
    page_url = file_page_url(locator)
    result = {
        'fileName': locator.file_name,
        'filePageUrl': page_url,
        'author': meta['author'],
        'license': meta['license'],
        'licenseUrl': meta['license_url'] or page_url,
    }
    cache_response(cache_key, result, ttl=META_CACHE_TTL)
    return jsonify(result)
