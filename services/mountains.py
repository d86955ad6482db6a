from flask import Blueprint, jsonify

import database
from services.wikimedia import classify, file_page_url, proxy_src

mountains_bp = Blueprint('mountains', __name__)


@mountains_bp.route('/api/mountains')
def api_mountains():
    return jsonify(database.list_mountains())


@mountains_bp.route('/api/mountains/<mountain_id>/photo')
def api_mountain_photo(mountain_id):
    """Proxy src + attribution page for a mountain's photo.

    No photo, or one we cannot proxy, is a normal answer, not an error.
    """
    mountain = database.get_mountain(mountain_id)
    if not mountain:
        return jsonify({'error': 'Mountain not found'}), 404

    photo_url = mountain['photo_url']
    locator = classify(photo_url)
    if locator is None:
        return jsonify({'id': mountain_id, 'src': None, 'filePageUrl': None})
    return jsonify({
        'id': mountain_id,
        'src': proxy_src(photo_url),
        'filePageUrl': file_page_url(locator),
    })
