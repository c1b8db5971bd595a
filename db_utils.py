# db_utils.py
# Postgres access: one lazy connection plus the puzzle, ledger and user stores.

from datetime import datetime

import psycopg2
import psycopg2.extras
import pytz

from game_logic import Puzzle
from puzzle_selection import StoreUnavailable


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id SERIAL PRIMARY KEY,
    username TEXT NOT NULL UNIQUE,
    email TEXT NOT NULL UNIQUE,
    password TEXT NOT NULL,
    language TEXT NOT NULL DEFAULT 'en',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    last_visited TIMESTAMPTZ,
    recent_puzzles JSONB NOT NULL DEFAULT '[]'::jsonb
);

CREATE TABLE IF NOT EXISTS puzzles (
    id TEXT PRIMARY KEY,
    difficulty TEXT NOT NULL CHECK (difficulty IN ('easy', 'medium', 'hard')),
    target_grid JSONB NOT NULL,
    available_grids JSONB NOT NULL,
    solution_indices JSONB NOT NULL
);

CREATE INDEX IF NOT EXISTS puzzles_difficulty_idx ON puzzles (difficulty);
"""


class PostgresConnection:
    def __init__(self, dsn: str):
        self.dsn = dsn
        self._conn = None

    def _connect(self):
        if self._conn is None or self._conn.closed != 0:
            try:
                self._conn = psycopg2.connect(self.dsn)
            except psycopg2.Error as e:
                raise StoreUnavailable(f"cannot connect to database: {e}") from e
        return self._conn

    def cursor(self, dict_rows=False):
        conn = self._connect()
        if dict_rows:
            return conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
        return conn.cursor()

    def commit(self):
        self._connect().commit()

    def rollback(self):
        if self._conn is not None and self._conn.closed == 0:
            self._conn.rollback()

    def ping(self, reconnect=False) -> bool:
        """True if the database answers; with `reconnect`, retry once on a fresh connection."""
        try:
            c = self.cursor()
            c.execute("SELECT 1;")
            c.close()
            return True
        except (psycopg2.Error, StoreUnavailable):
            if not reconnect:
                return False

        self._conn = None
        try:
            c = self.cursor()
            c.execute("SELECT 1;")
            c.close()
            return True
        except (psycopg2.Error, StoreUnavailable):
            return False


def init_schema(db):
    cur = db.cursor()
    cur.execute(SCHEMA_SQL)
    db.commit()
    cur.close()


class _Store:
    """Runs one query at a time, turning driver errors into StoreUnavailable."""

    def __init__(self, db):
        self.db = db

    def _fetch(self, query, params=None, one=False):
        try:
            cur = self.db.cursor(dict_rows=True)
            try:
                cur.execute(query, params)
                return cur.fetchone() if one else cur.fetchall()
            finally:
                cur.close()
        except psycopg2.Error as e:
            self.db.rollback()
            raise StoreUnavailable(str(e)) from e

    def _write(self, query, params=None):
        try:
            cur = self.db.cursor()
            try:
                cur.execute(query, params)
                rowcount = cur.rowcount
            finally:
                cur.close()
            self.db.commit()
            return rowcount
        except psycopg2.Error as e:
            self.db.rollback()
            raise StoreUnavailable(str(e)) from e


class PuzzleStore(_Store):
    def list_puzzles(self, difficulty):
        rows = self._fetch("""
            SELECT id, difficulty, target_grid, available_grids, solution_indices
            FROM puzzles
            WHERE difficulty = %s
            ORDER BY id
        """, (difficulty,))
        return [Puzzle.from_row(row) for row in rows]

    def get_puzzle(self, puzzle_id):
        row = self._fetch("""
            SELECT id, difficulty, target_grid, available_grids, solution_indices
            FROM puzzles
            WHERE id = %s
        """, (str(puzzle_id),), one=True)
        return Puzzle.from_row(row) if row else None

    def save_puzzle(self, puzzle):
        row = puzzle.to_row()
        self._write("""
            INSERT INTO puzzles (id, difficulty, target_grid, available_grids, solution_indices)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (id) DO UPDATE SET
                difficulty = EXCLUDED.difficulty,
                target_grid = EXCLUDED.target_grid,
                available_grids = EXCLUDED.available_grids,
                solution_indices = EXCLUDED.solution_indices
        """, (
            row["id"],
            row["difficulty"],
            psycopg2.extras.Json(row["target_grid"]),
            psycopg2.extras.Json(row["available_grids"]),
            psycopg2.extras.Json(row["solution_indices"]),
        ))


class LedgerStore(_Store):
    """Recently played puzzle ids of logged-in users (users.recent_puzzles)."""

    def get_recent_ids(self, player_ref):
        row = self._fetch(
            "SELECT recent_puzzles FROM users WHERE id = %s", (player_ref,), one=True
        )
        if not row or row["recent_puzzles"] is None:
            return []
        return [str(i) for i in row["recent_puzzles"]]

    def set_recent_ids(self, player_ref, ids):
        self._write(
            "UPDATE users SET recent_puzzles = %s WHERE id = %s",
            (psycopg2.extras.Json(list(ids)), player_ref),
        )


class UserStore(_Store):
    def get_by_email(self, email):
        return self._fetch("SELECT * FROM users WHERE email = %s", (email,), one=True)

    def get_by_id(self, user_id):
        return self._fetch("SELECT * FROM users WHERE id = %s", (user_id,), one=True)

    def username_taken(self, username) -> bool:
        row = self._fetch("SELECT id FROM users WHERE username = %s", (username,), one=True)
        return row is not None

    def create(self, username, email, password_hash, language):
        self._write("""
            INSERT INTO users (username, email, password, language)
            VALUES (%s, %s, %s, %s)
        """, (username, email, password_hash, language))
        return self.get_by_email(email)

    def update_password(self, email, password_hash):
        self._write("UPDATE users SET password = %s WHERE email = %s", (password_hash, email))

    def set_language(self, user_id, lang):
        self._write("UPDATE users SET language = %s WHERE id = %s", (lang, user_id))

    def touch_last_visited(self, user_id):
        self._write(
            "UPDATE users SET last_visited = %s WHERE id = %s",
            (datetime.now(pytz.utc), user_id),
        )
