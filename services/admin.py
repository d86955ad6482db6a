"""
Admin endpoints for mountain photos. Every route checks admin rights
before touching Wikimedia or the database.
"""

import logging
import sqlite3
from functools import wraps
from typing import Optional

from flask import Blueprint, request, jsonify, session
from pydantic import BaseModel, ValidationError, field_validator

import config
import database
from services import photo_updater
from services.wikimedia import resolve_canonical

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__)


class FetchPhotosRequest(BaseModel):
    limit: int = photo_updater.MAX_BATCH_LIMIT
    dryRun: bool = False
    force: bool = False

    @field_validator('limit', mode='before')
    @classmethod
    def _clamp_limit(cls, v):
        return photo_updater.clamp_limit(photo_updater.MAX_BATCH_LIMIT if v is None else v)

    @field_validator('dryRun', 'force', mode='before')
    @classmethod
    def _truthy(cls, v):
        return bool(v)


class FetchPhotoRequest(BaseModel):
    force: bool = False

    @field_validator('force', mode='before')
    @classmethod
    def _truthy(cls, v):
        return bool(v)


class SetPhotoRequest(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    photoUrl: Optional[str] = None


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def current_user():
    """Signed-session user dict: email, app_metadata, user_metadata."""
    user = session.get('user')
    return user if isinstance(user, dict) else None


def is_admin(user):
    # Three independent sources, any one is enough: session role claim,
    # the ADMIN_EMAILS allow-list, and users.role in the database.
    if not user:
        return False
    role = (user.get('app_metadata') or {}).get('role') or (user.get('user_metadata') or {}).get('role')
    if role == 'admin':
        return True
    email = user.get('email') or ''
    if not email:
        return False
    if email in config.ADMIN_EMAILS:
        return True
    try:
        return database.get_user_role(email) == 'admin'
    except sqlite3.Error as e:
        logger.warning(f'Admin role lookup failed for {email}: {e}')
        return False


def require_admin(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not is_admin(current_user()):
            return jsonify({'success': False, 'error': 'Forbidden'}), 403
        return view(*args, **kwargs)
    return wrapped


@admin_bp.route('/api/admin/mountains/fetch-photos', methods=['POST'])
@require_admin
def fetch_photos():
    body = FetchPhotosRequest.model_validate(_json_body())
    result = photo_updater.run_batch(limit=body.limit, dry_run=body.dryRun, force=body.force)

    if body.dryRun:
        return jsonify({
            'success': True,
            'dryRun': True,
            'force': body.force,
            'updates': result.updates,
            'skipped': result.skipped,
            'errors': result.errors,
        })
    return jsonify({
        'success': True,
        'force': body.force,
        'applied': result.applied,
        'skipped': result.skipped,
        'errors': result.errors,
    })


@admin_bp.route('/api/admin/mountains/<mountain_id>/fetch-photo', methods=['POST'])
@require_admin
def fetch_photo(mountain_id):
    mountain = database.get_mountain(mountain_id)
    if not mountain:
        return jsonify({'success': False, 'error': 'Not found'}), 404

    body = FetchPhotoRequest.model_validate(_json_body())
    if mountain['photo_url'] and not body.force:
        return jsonify({'success': True, 'skipped': True, 'reason': 'Already has photo_url'})

    url = photo_updater.fetch_one(mountain)
    if not url:
        return jsonify({'success': False, 'error': 'NotFoundOnWikipedia'}), 404
    return jsonify({'success': True, 'photo_url': url})


@admin_bp.route('/api/admin/mountains/set-photo', methods=['POST'])
@require_admin
def set_photo():
    try:
        body = SetPhotoRequest.model_validate(_json_body())
    except ValidationError:
        return jsonify({'success': False, 'error': 'Invalid request body'}), 400
    if not (body.id or body.name) or not body.photoUrl:
        return jsonify({'success': False, 'error': 'Missing id/name or photoUrl'}), 400

    normalized = resolve_canonical(body.photoUrl)
    if not normalized:
        return jsonify({
            'success': False,
            'error': 'Unsupported URL. Provide an upload.wikimedia.org, Special:FilePath or File: URL.',
        }), 400

    target_id = body.id
    if not target_id:
        mountain = database.find_mountain_by_name(body.name)
        if not mountain:
            return jsonify({'success': False, 'error': 'Mountain not found by name'}), 404
        target_id = mountain['id']

    if not database.update_photo_url(target_id, normalized):
        return jsonify({'success': False, 'error': 'Not found'}), 404
    return jsonify({'success': True, 'id': target_id, 'photo_url': normalized})
