import sqlite3
import uuid

import config

DB_PATH = config.DATABASE_PATH


def get_db():
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


def init_db():
    conn = get_db()
    conn.executescript('''
        CREATE TABLE IF NOT EXISTS mountains (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            photo_url TEXT,
            created_at TEXT DEFAULT (datetime('now')),
            updated_at TEXT DEFAULT (datetime('now'))
        );
        CREATE INDEX IF NOT EXISTS idx_mountains_name ON mountains(name);

        CREATE TABLE IF NOT EXISTS users (
            email TEXT PRIMARY KEY,
            role TEXT
        );
    ''')
    conn.close()


def add_mountain(name, photo_url=None, mountain_id=None):
    mountain_id = mountain_id or str(uuid.uuid4())
    conn = get_db()
    conn.execute('INSERT INTO mountains (id, name, photo_url) VALUES (?, ?, ?)',
                 (mountain_id, name, photo_url))
    conn.commit()
    conn.close()
    return mountain_id


def list_mountains():
    conn = get_db()
    rows = conn.execute('SELECT id, name, photo_url FROM mountains ORDER BY name ASC').fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_mountain(mountain_id):
    conn = get_db()
    row = conn.execute('SELECT id, name, photo_url FROM mountains WHERE id = ?', (mountain_id,)).fetchone()
    conn.close()
    return dict(row) if row else None


def find_mountain_by_name(name):
    conn = get_db()
    row = conn.execute('SELECT id, name, photo_url FROM mountains WHERE name = ?', (name,)).fetchone()
    conn.close()
    return dict(row) if row else None


def mountains_for_photo_update(limit, force=False):
    """Mountains the batch updater should look at, ordered by name.

    Only rows without a photo unless force is set.
    """
    conn = get_db()
    if force:
        rows = conn.execute('SELECT id, name, photo_url FROM mountains ORDER BY name ASC LIMIT ?',
                            (limit,)).fetchall()
    else:
        rows = conn.execute('''
            SELECT id, name, photo_url FROM mountains
            WHERE photo_url IS NULL OR photo_url = ''
            ORDER BY name ASC LIMIT ?
        ''', (limit,)).fetchall()
    conn.close()
    return [dict(r) for r in rows]


def update_photo_url(mountain_id, photo_url):
    conn = get_db()
    cur = conn.execute('''
        UPDATE mountains SET photo_url = ?, updated_at = datetime('now') WHERE id = ?
    ''', (photo_url, mountain_id))
    conn.commit()
    updated = cur.rowcount > 0
    conn.close()
    return updated


def set_user_role(email, role):
    conn = get_db()
    conn.execute('INSERT INTO users (email, role) VALUES (?, ?) ON CONFLICT(email) DO UPDATE SET role = excluded.role',
                 (email, role))
    conn.commit()
    conn.close()


def get_user_role(email):
    conn = get_db()
    row = conn.execute('SELECT role FROM users WHERE email = ? LIMIT 1', (email,)).fetchone()
    conn.close()
    return row['role'] if row else None
