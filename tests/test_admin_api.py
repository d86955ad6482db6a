import pytest

import config
import database
from services import mediawiki, photo_updater
from services.admin import is_admin

FUJI_THUMB = 'https://upload.wikimedia.org/wikipedia/commons/thumb/1/1a/Fuji.jpg/800px-Fuji.jpg'
FUJI = 'https://upload.wikimedia.org/wikipedia/commons/1/1a/Fuji.jpg'


@pytest.fixture
def page_images(monkeypatch):
    table = {}
    calls = []

    def fake_page_image(title, thumb_size=800):
        calls.append(title)
        return table.get(title)

    monkeypatch.setattr(mediawiki, 'page_image', fake_page_image)
    fake_page_image.table = table
    fake_page_image.calls = calls
    return fake_page_image


def _login(client, **user):
    with client.session_transaction() as sess:
        sess['user'] = user


def test_is_admin_sources(app, monkeypatch):
    monkeypatch.setattr(config, 'ADMIN_EMAILS', ['boss@example.com'])
    database.set_user_role('ranger@example.com', 'admin')
    database.set_user_role('hiker@example.com', 'member')

    assert not is_admin(None)
    assert not is_admin({})
    assert is_admin({'email': 'x@example.com', 'app_metadata': {'role': 'admin'}})
    assert is_admin({'email': 'x@example.com', 'user_metadata': {'role': 'admin'}})
    assert is_admin({'email': 'boss@example.com'})
    assert is_admin({'email': 'ranger@example.com'})
    assert not is_admin({'email': 'hiker@example.com'})


@pytest.mark.parametrize('path', [
    '/api/admin/mountains/fetch-photos',
    '/api/admin/mountains/abc/fetch-photo',
    '/api/admin/mountains/set-photo',
])
def test_admin_routes_forbidden_before_any_work(client, page_images, path):
    resp = client.post(path, json={'force': True})
    assert resp.status_code == 403
    assert resp.get_json() == {'success': False, 'error': 'Forbidden'}

    _login(client, email='hiker@example.com')
    assert client.post(path, json={}).status_code == 403
    assert page_images.calls == []


def test_fetch_photos_dry_run(admin_client, page_images):
    fuji = database.add_mountain('富士山')
    database.add_mountain('北岳')
    page_images.table['富士山'] = FUJI_THUMB

    resp = admin_client.post('/api/admin/mountains/fetch-photos', json={'dryRun': True, 'limit': 500})
    body = resp.get_json()
    assert resp.status_code == 200
    assert body == {
        'success': True,
        'dryRun': True,
        'force': False,
        'updates': [{'id': fuji, 'photo_url': FUJI}],
        'skipped': 1,
        'errors': [],
    }
    assert database.get_mountain(fuji)['photo_url'] is None
    assert resp.headers['Cache-Control'] == 'no-store'


def test_fetch_photos_applies(admin_client, page_images):
    fuji = database.add_mountain('富士山')
    page_images.table['富士山'] = FUJI_THUMB

    resp = admin_client.post('/api/admin/mountains/fetch-photos', json={})
    assert resp.get_json() == {'success': True, 'force': False, 'applied': 1, 'skipped': 0, 'errors': []}
    assert database.get_mountain(fuji)['photo_url'] == FUJI


def test_fetch_photos_tolerates_non_json_body(admin_client, page_images):
    resp = admin_client.post('/api/admin/mountains/fetch-photos', data='nope', content_type='text/plain')
    assert resp.status_code == 200
    assert resp.get_json()['applied'] == 0


def test_fetch_photo_single(admin_client, page_images):
    kita = database.add_mountain('北岳')
    page_images.table['北岳 (山)'] = FUJI_THUMB

    resp = admin_client.post(f'/api/admin/mountains/{kita}/fetch-photo', json={})
    assert resp.get_json() == {'success': True, 'photo_url': FUJI}
    assert database.get_mountain(kita)['photo_url'] == FUJI

    resp = admin_client.post(f'/api/admin/mountains/{kita}/fetch-photo', json={})
    assert resp.get_json()['skipped'] is True


def test_fetch_photo_not_found(admin_client, page_images):
    assert admin_client.post('/api/admin/mountains/missing/fetch-photo', json={}).status_code == 404
    nameless = database.add_mountain('名無山')
    resp = admin_client.post(f'/api/admin/mountains/{nameless}/fetch-photo', json={})
    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'NotFoundOnWikipedia'


def test_set_photo_normalizes_thumbnail(admin_client):
    fuji = database.add_mountain('富士山')
    resp = admin_client.post('/api/admin/mountains/set-photo', json={'name': '富士山', 'photoUrl': FUJI_THUMB})
    assert resp.get_json() == {'success': True, 'id': fuji, 'photo_url': FUJI}
    assert database.get_mountain(fuji)['photo_url'] == FUJI


def test_set_photo_resolves_file_page(admin_client, monkeypatch):
    fuji = database.add_mountain('富士山')
    monkeypatch.setattr(mediawiki, 'image_url', lambda name: FUJI if name == 'Fuji.jpg' else None)
    resp = admin_client.post('/api/admin/mountains/set-photo', json={
        'id': fuji, 'photoUrl': 'https://commons.wikimedia.org/wiki/File:Fuji.jpg'})
    assert resp.get_json()['photo_url'] == FUJI


def test_set_photo_rejects_bad_input(admin_client):
    database.add_mountain('富士山')
    post = lambda body: admin_client.post('/api/admin/mountains/set-photo', json=body)  # noqa: E731
    assert post({'photoUrl': FUJI}).status_code == 400
    assert post({'name': '富士山'}).status_code == 400
    assert post({'name': '富士山', 'photoUrl': 'https://example.com/photo.jpg'}).status_code == 400
    assert post({'name': '富士山', 'photoUrl': 'https://upload.wikimedia.org/wikipedia/commons/thumb/1/1a/Fuji.jpg'}).status_code == 400
    assert post({'id': 12, 'photoUrl': FUJI}).status_code == 400
    assert post({'name': '槍ヶ岳', 'photoUrl': FUJI}).status_code == 404
    assert post({'id': 'nope', 'photoUrl': FUJI}).status_code == 404


def test_batch_limit_is_clamped(admin_client, page_images, monkeypatch):
    seen = {}

    def fake_run_batch(limit, dry_run, force):
        seen.update(limit=limit, dry_run=dry_run, force=force)
        return photo_updater.BatchResult()

    monkeypatch.setattr(photo_updater, 'run_batch', fake_run_batch)
    admin_client.post('/api/admin/mountains/fetch-photos', json={'limit': 0, 'force': 1})
    assert seen == {'limit': 1, 'dry_run': False, 'force': True}
