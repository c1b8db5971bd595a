# puzzle_selection.py
# Picks a puzzle the player has not seen recently and keeps the
# "recently played" ledger for guests (in memory) and users (in the database).

import logging
import random
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta

import pytz

from settings import DIFFICULTY_KEYS, RECENT_LEDGER_CAP

logger = logging.getLogger(__name__)


class StoreUnavailable(Exception):
    """The puzzle / ledger database could not be reached or queried."""


class NoPuzzlesConfigured(Exception):
    """No puzzle exists for a difficulty at all (a data problem, not exhaustion)."""

    def __init__(self, difficulty):
        super().__init__(f"no puzzles configured for difficulty {difficulty!r}")
        self.difficulty = difficulty


@dataclass(frozen=True)
class Exhausted:
    """Every puzzle of `difficulty` is in the player's ledger."""
    difficulty: str


def normalize_id(puzzle_id) -> str:
    return str(puzzle_id).strip()


def push_recent(recent_ids, puzzle_id, cap=RECENT_LEDGER_CAP):
    """
    Return a new ledger with `puzzle_id` as the most recent entry.

    An id already present is moved to the tail rather than duplicated, and
    the oldest entries are dropped once the ledger exceeds `cap`.
    """
    clean_id = normalize_id(puzzle_id)
    updated = [normalize_id(i) for i in recent_ids]
    updated = [i for i in updated if i != clean_id]
    updated.append(clean_id)
    if len(updated) > cap:
        updated = updated[-cap:]
    return updated


# -----------------------------
# Ledger sources
# -----------------------------
class GuestLedger:
    """Ledger held by the caller for an anonymous session; never persisted."""

    def __init__(self, recent_ids=None):
        self._ids = list(recent_ids or [])

    def get_recent_ids(self):
        return list(self._ids)

    def set_recent_ids(self, ids):
        self._ids = list(ids)

    def __len__(self):
        return len(self._ids)


class PersistedLedger:
    """Ledger of a logged-in player, read from and written to a ledger store."""

    def __init__(self, store, player_ref):
        self.store = store
        self.player_ref = player_ref

    def get_recent_ids(self):
        return self.store.get_recent_ids(self.player_ref)

    def set_recent_ids(self, ids):
        self.store.set_recent_ids(self.player_ref, ids)


def ledger_for(player_ref, ledger_store, guest_ledger=None):
    if player_ref is not None:
        return PersistedLedger(ledger_store, player_ref)
    if guest_ledger is None:
        guest_ledger = GuestLedger()
    return guest_ledger


# -----------------------------
# Selection policy
# -----------------------------
def select_unplayed_puzzle(puzzle_store, ledger, difficulty, rng=random):
    """
    Pick a random puzzle of `difficulty` whose id is not in the ledger.

    Returns a Puzzle, or Exhausted when the player has seen every one.
    Raises NoPuzzlesConfigured when the difficulty has no puzzles at all.
    If the ledger cannot be read, any puzzle of the difficulty is returned.
    """
    if difficulty not in DIFFICULTY_KEYS:
        raise ValueError(f"unknown difficulty {difficulty!r}")

    puzzles = list(puzzle_store.list_puzzles(difficulty))
    if not puzzles:
        raise NoPuzzlesConfigured(difficulty)

    try:
        excluded = {normalize_id(i) for i in ledger.get_recent_ids()}
    except StoreUnavailable:
        logger.warning("Ledger read failed, picking from all %s puzzles", difficulty, exc_info=True)
        return rng.choice(puzzles)

    candidates = [p for p in puzzles if normalize_id(p.id) not in excluded]
    logger.debug("%d/%d %s puzzles unplayed", len(candidates), len(puzzles), difficulty)

    if not candidates:
        return Exhausted(difficulty)

    return rng.choice(candidates)


def record_played(ledger, puzzle_id):
    """Add a presented puzzle to the ledger and return the updated id list."""
    updated = push_recent(ledger.get_recent_ids(), puzzle_id)
    ledger.set_recent_ids(updated)
    return updated


# -----------------------------
# Guest registry
# -----------------------------
class GuestLedgers:
    """
    Process-local guest ledgers keyed by the guest id kept in the session.
    Requests and the purge job touch it from different threads.
    """

    def __init__(self, clock=None):
        self._ledgers = {}
        self._last_seen = {}
        self._lock = threading.Lock()
        self._clock = clock or (lambda: datetime.now(pytz.utc))

    def get(self, guest_id):
        """Ledger for `guest_id`, created empty on first use."""
        with self._lock:
            ledger = self._ledgers.get(guest_id)
            if ledger is None:
                ledger = self._ledgers[guest_id] = GuestLedger()
            self._last_seen[guest_id] = self._clock()
            return ledger

    def discard(self, guest_id):
        with self._lock:
            self._ledgers.pop(guest_id, None)
            self._last_seen.pop(guest_id, None)

    def purge_idle(self, max_idle_minutes):
        """Drop ledgers of guests idle longer than `max_idle_minutes`."""
        cutoff = self._clock() - timedelta(minutes=max_idle_minutes)
        with self._lock:
            idle = [g for g, seen in self._last_seen.items() if seen < cutoff]
            for guest_id in idle:
                self._ledgers.pop(guest_id, None)
                self._last_seen.pop(guest_id, None)
        if idle:
            logger.info("Purged %d idle guest ledger(s)", len(idle))
        return len(idle)

    def __contains__(self, guest_id):
        with self._lock:
            return guest_id in self._ledgers

    def __len__(self):
        with self._lock:
            return len(self._ledgers)
