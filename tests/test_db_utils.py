import psycopg2

import db_utils
from db_utils import PostgresConnection


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn

    def execute(self, query, params=None):
        if self.conn.broken:
            raise psycopg2.OperationalError("server closed the connection")
        self.conn.queries.append(query)

    def close(self):
        pass


class FakeConnection:
    def __init__(self, broken=False):
        self.broken = broken
        self.closed = 0
        self.queries = []

    def cursor(self, cursor_factory=None):
        return FakeCursor(self)

    def rollback(self):
        pass


def test_ping_answers(monkeypatch):
    conn = FakeConnection()
    monkeypatch.setattr(db_utils.psycopg2, "connect", lambda dsn: conn)

    assert PostgresConnection("postgresql://x").ping() is True
    assert conn.queries == ["SELECT 1;"]


def test_ping_unreachable_database(monkeypatch):
    def refuse(dsn):
        raise psycopg2.OperationalError("connection refused")

    monkeypatch.setattr(db_utils.psycopg2, "connect", refuse)

    db = PostgresConnection("postgresql://x")
    assert db.ping() is False
    assert db.ping(reconnect=True) is False


def test_ping_reconnects_after_dropped_connection(monkeypatch):
    connections = [FakeConnection(broken=True), FakeConnection()]
    monkeypatch.setattr(db_utils.psycopg2, "connect", lambda dsn: connections.pop(0))

    db = PostgresConnection("postgresql://x")
    assert db.ping() is False
    assert db.ping(reconnect=True) is True
    assert connections == []
