"""
Bot repository tests against an in-memory SQLite database.

Run with: python -m pytest tests/test_bot_repository.py -v
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import warnings
from datetime import datetime, timedelta, timezone

import pytest

from persistence import BotRepository, close_db, init_db
from persistence.models import utcnow


@pytest.fixture
def repo():
    init_db('sqlite://')
    yield BotRepository()
    close_db()


class TestConnections:

    def test_create_connection(self, repo):
        record = repo.create_connection('Bob', 'host:25566', '1.20.1')

        assert record['id']
        assert record['username'] == 'Bob'
        assert record['serverIp'] == 'host:25566'
        assert record['version'] == '1.20.1'
        assert record['isConnected'] is False
        assert record['lastPing'] is None
        assert record['createdAt'] is not None

    def test_created_at_is_naive_utc(self, repo):
        before = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(seconds=1)
        record = repo.create_connection('Bob', 'host', '1.20.1')
        after = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(seconds=1)

        created = datetime.fromisoformat(record['createdAt'])
        assert created.tzinfo is None
        assert before <= created <= after

    def test_utcnow_raises_no_deprecation_warning(self):
        with warnings.catch_warnings():
            warnings.simplefilter('error', DeprecationWarning)
            assert utcnow().tzinfo is None

    def test_ids_are_unique(self, repo):
        a = repo.create_connection('Bob', 'host', '1.20.1')
        b = repo.create_connection('Bob', 'host', '1.20.1')
        assert a['id'] != b['id']

    def test_get_connection(self, repo):
        record = repo.create_connection('Bob', 'host', '1.20.1')
        assert repo.get_connection(record['id']) == record

    def test_get_missing_connection(self, repo):
        assert repo.get_connection('missing') is None

    def test_update_live_fields(self, repo):
        record = repo.create_connection('Bob', 'host', '1.20.1')
        repo.update_connection(record['id'], is_connected=True)
        updated = repo.update_connection(record['id'], last_ping=37)

        assert updated['isConnected'] is True
        assert updated['lastPing'] == 37
        assert repo.get_connection(record['id'])['lastPing'] == 37

    def test_update_missing_connection(self, repo):
        assert repo.update_connection('missing', is_connected=True) is None

    def test_update_rejects_other_fields(self, repo):
        record = repo.create_connection('Bob', 'host', '1.20.1')
        with pytest.raises(ValueError):
            repo.update_connection(record['id'], username='Mallory')

    def test_list_all_connections(self, repo):
        repo.create_connection('Bob', 'host', '1.20.1')
        repo.create_connection('Alice', 'host', '1.19.4')
        names = sorted(c['username'] for c in repo.list_all_connections())
        assert names == ['Alice', 'Bob']


class TestChatAndLogs:

    def _connection(self, repo):
        return repo.create_connection('Bob', 'host', '1.20.1')['id']

    def test_chat_messages_in_order(self, repo):
        cid = self._connection(repo)
        repo.create_chat_message(cid, 'Alice', 'first')
        repo.create_chat_message(cid, 'Bob', '/help', message_type='console', is_command=True)

        messages = repo.get_chat_messages(cid)
        assert [m['message'] for m in messages] == ['first', '/help']
        assert messages[1]['messageType'] == 'console'
        assert messages[1]['isCommand'] is True
        assert messages[0]['connectionId'] == cid

    def test_chat_messages_scoped_to_connection(self, repo):
        a = self._connection(repo)
        b = self._connection(repo)
        repo.create_chat_message(a, 'Alice', 'for a')
        assert repo.get_chat_messages(b) == []

    def test_logs(self, repo):
        cid = self._connection(repo)
        repo.create_log(cid, 'info', 'Bot Bob successfully logged into server')
        repo.create_log(cid, 'warning', 'Bot Bob disconnected from server')

        logs = repo.get_logs(cid)
        assert [l['logLevel'] for l in logs] == ['info', 'warning']
        assert logs[0]['timestamp'] is not None

    def test_entries_need_existing_connection(self, repo):
        with pytest.raises(Exception):
            repo.create_log('missing', 'info', 'orphan')
