# tests/conftest.py
import os
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path

import pytest
import pytz

# Add project root to sys.path so app, game_logic, ... can be imported in tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# The idle-guest scheduler thread is not wanted while testing
os.environ.setdefault("PIXELART_SCHEDULER", "off")

from game_logic import SAMPLE_PUZZLE  # noqa: E402
from puzzle_selection import GuestLedgers, StoreUnavailable  # noqa: E402


class FakePuzzleStore:
    def __init__(self, puzzles):
        self.puzzles = list(puzzles)
        self.fail = False

    def list_puzzles(self, difficulty):
        if self.fail:
            raise StoreUnavailable("puzzle store down")
        return [p for p in self.puzzles if p.difficulty == difficulty]

    def get_puzzle(self, puzzle_id):
        for p in self.puzzles:
            if p.id == str(puzzle_id):
                return p
        return None


class FakeLedgerStore:
    def __init__(self):
        self.ledgers = {}
        self.fail_reads = False

    def get_recent_ids(self, player_ref):
        if self.fail_reads:
            raise StoreUnavailable("ledger store down")
        return list(self.ledgers.get(player_ref, []))

    def set_recent_ids(self, player_ref, ids):
        self.ledgers[player_ref] = list(ids)


class FakeUserStore:
    def __init__(self):
        self.users = {}
        self._next_id = 1

    def get_by_email(self, email):
        for user in self.users.values():
            if user["email"] == email:
                return dict(user)
        return None

    def get_by_id(self, user_id):
        user = self.users.get(user_id)
        return dict(user) if user else None

    def username_taken(self, username):
        return any(u["username"] == username for u in self.users.values())

    def create(self, username, email, password_hash, language):
        user = {
            "id": self._next_id,
            "username": username,
            "email": email,
            "password": password_hash,
            "language": language,
            "created_at": datetime.now(pytz.utc),
            "last_visited": None,
        }
        self.users[user["id"]] = user
        self._next_id += 1
        return dict(user)

    def update_password(self, email, password_hash):
        for user in self.users.values():
            if user["email"] == email:
                user["password"] = password_hash

    def set_language(self, user_id, lang):
        self.users[user_id]["language"] = lang

    def touch_last_visited(self, user_id):
        self.users[user_id]["last_visited"] = datetime.now(pytz.utc)


@pytest.fixture
def sample_puzzles():
    return [
        SAMPLE_PUZZLE,
        replace(SAMPLE_PUZZLE, id="easy-002"),
        replace(SAMPLE_PUZZLE, id="medium-001", difficulty="medium"),
    ]


@pytest.fixture
def puzzle_store(sample_puzzles):
    return FakePuzzleStore(sample_puzzles)


@pytest.fixture
def ledger_store():
    return FakeLedgerStore()


@pytest.fixture
def web(monkeypatch, puzzle_store, ledger_store):
    """The app module with its database stores swapped for in-memory fakes."""
    import app as app_module

    monkeypatch.setattr(app_module, "puzzle_store", puzzle_store)
    monkeypatch.setattr(app_module, "ledger_store", ledger_store)
    monkeypatch.setattr(app_module, "users", FakeUserStore())
    monkeypatch.setattr(app_module, "guest_ledgers", GuestLedgers())
    app_module.app.config["TESTING"] = True
    return app_module


@pytest.fixture
def client(web):
    return web.app.test_client()
