"""
Error hierarchy for the photo service.

Every error carries the HTTP status the API layer should answer with, so
blueprints can simply let them propagate to the app-level handler.
"""


class PhotoServiceError(Exception):
    status_code = 500

    def __init__(self, message='', status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidProxyParam(PhotoServiceError):
    """The ``u`` query parameter is not valid base64url."""
    status_code = 400


class UpstreamError(PhotoServiceError):
    """Network failure talking to Wikimedia."""
    status_code = 502


class UpstreamTimeout(UpstreamError):
    status_code = 504


class UpstreamStatus(UpstreamError):
    """Upstream answered with a non-2xx status we do not retry."""

    def __init__(self, upstream_status, message=''):
        super().__init__(message or f'Upstream fetch failed ({upstream_status})')
        self.upstream_status = upstream_status


class ImageTooLarge(PhotoServiceError):
    status_code = 413


class MediaWikiDecodeError(PhotoServiceError):
    """MediaWiki API answered with a shape we do not understand."""
    status_code = 502
