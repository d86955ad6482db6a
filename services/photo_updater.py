"""
Backfills mountains.photo_url from the lead image of each mountain's
ja.wikipedia article.

Lookups for one run go out concurrently; they share nothing, and a
mountain with no article image is just counted as skipped. Overlapping
runs may write the same row twice, which is harmless since the value is
the same (or an equally good) URL.
"""

import logging
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import config
import database
from errors import PhotoServiceError
from services import mediawiki
from services.wikimedia import to_original_upload

logger = logging.getLogger(__name__)

MAX_BATCH_LIMIT = 100
DISAMBIGUATION_SUFFIX = ' (山)'


@dataclass
class BatchResult:
    updates: list = field(default_factory=list)
    skipped: int = 0
    errors: list = field(default_factory=list)
    applied: int = 0


def clamp_limit(limit):
    try:
        value = int(limit)
    except (TypeError, ValueError):
        return MAX_BATCH_LIMIT
    return max(1, min(MAX_BATCH_LIMIT, value))


def candidate_titles(name):
    return [name, f'{name}{DISAMBIGUATION_SUFFIX}']


def discover_photo(name, lookup=None):
    """Canonical upload URL of the first candidate article with an image."""
    lookup = lookup or mediawiki.page_image
    for title in candidate_titles(name):
        thumb = lookup(title)
        if thumb:
            return to_original_upload(thumb) or thumb
    return None


def _lookup_one(mountain, force, lookup):
    if not force and mountain.get('photo_url'):
        return None
    return discover_photo(mountain['name'], lookup=lookup)


def run_batch(limit=MAX_BATCH_LIMIT, dry_run=False, force=False, lookup=None, max_workers=None):
    limit = clamp_limit(limit)
    mountains = database.mountains_for_photo_update(limit, force=force)
    result = BatchResult()
    if not mountains:
        return result

    workers = max(1, min(max_workers or config.BATCH_MAX_WORKERS, len(mountains)))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(_lookup_one, m, force, lookup) for m in mountains]
        for mountain, future in zip(mountains, futures):
            try:
                url = future.result()
            except PhotoServiceError as e:
                logger.warning(f"Photo lookup failed for {mountain['name']}: {e}")
                result.errors.append({'id': mountain['id'], 'name': mountain['name'], 'error': str(e)})
                continue
            if url:
                result.updates.append({'id': mountain['id'], 'photo_url': url})
            else:
                result.skipped += 1

    if dry_run:
        return result

    for update in result.updates:
        try:
            database.update_photo_url(update['id'], update['photo_url'])
            result.applied += 1
        except sqlite3.Error as e:
            logger.error(f"Failed to store photo for {update['id']}: {e}")
            result.errors.append({'id': update['id'], 'error': str(e)})

    logger.info(f'Photo batch: {result.applied} applied, {result.skipped} skipped, {len(result.errors)} errors')
    return result


def fetch_one(mountain, lookup=None):
    """Look up and store a photo for one mountain row.

    Returns the stored URL, or None when no candidate article has an image.
    """
    url = discover_photo(mountain['name'], lookup=lookup)
    if url:
        database.update_photo_url(mountain['id'], url)
    return url
