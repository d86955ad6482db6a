from flask import Flask, request, jsonify
from flask_compress import Compress
import logging

import config
import database
from errors import PhotoServiceError
from routes.api import ALL_BLUEPRINTS

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)


def create_app(db_path=None):
    app = Flask(__name__)
    app.config['SECRET_KEY'] = config.SECRET_KEY
    app.json.ensure_ascii = False

    # Gzip/Brotli compression for text responses (images pass through untouched)
    app.config['COMPRESS_ALGORITHM'] = ['br', 'gzip']
    app.config['COMPRESS_MIMETYPES'] = ['application/json']
    Compress(app)

    if db_path:
        database.DB_PATH = db_path
    database.init_db()

    for bp in ALL_BLUEPRINTS:
        app.register_blueprint(bp)

    @app.after_request
    def add_cache_headers(response):
        """Short cache for API JSON unless the view chose its own policy."""
        if request.path.startswith('/api/') and 'Cache-Control' not in response.headers:
            if request.path.startswith('/api/admin/') or response.status_code >= 400:
                response.headers['Cache-Control'] = 'no-store'
            else:
                response.headers['Cache-Control'] = 'public, max-age=60'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'SAMEORIGIN'
        return response

    @app.errorhandler(PhotoServiceError)
    def handle_photo_service_error(e):
        if e.status_code >= 500:
            logger.error(f'{request.method} {request.path} -> {e.status_code}: {e.message}')
        body = {'error': e.message or 'Proxy error'}
        headers = {}
        upstream_status = getattr(e, 'upstream_status', None)
        if upstream_status is not None:
            body['status'] = upstream_status
            headers['X-Upstream-Status'] = str(upstream_status)
        return jsonify(body), e.status_code, headers

    @app.errorhandler(500)
    def handle_internal_error(e):
        logger.exception(f'Unhandled error on {request.method} {request.path}')
        return jsonify({'error': 'Internal server error'}), 500

    @app.route('/health')
    def health():
        return jsonify({'ok': True})

    return app


if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=8095, debug=False, threaded=True)
