"""
Simulated protocol client tests.

Run with: python -m pytest tests/test_simulated_client.py -v
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from engine.client import ClientOptions
from engine.events import ChatReceived, Ended, LoggedIn, PlayerJoined, ServerMessage
from engine.simulated_client import SimulatedClient
from fakes import ManualTasks


class TestSimulatedClient:

    def setup_method(self):
        self.events = []
        self.tasks = ManualTasks()

    def _client(self, host='localhost', stop_after_sleeps=2):
        client = None

        def sleep(seconds):
            self.tasks.sleeps.append(seconds)
            if len(self.tasks.sleeps) >= stop_after_sleeps:
                client._finish('test over')

        options = ClientOptions(host, 25565, 'Bob', '1.20.1')
        client = SimulatedClient(options, self.events.append, start_task=self.tasks.start_task, sleep=sleep)
        return client

    def test_requires_scheduler(self):
        with pytest.raises(ValueError):
            SimulatedClient(ClientOptions('h', 1, 'Bob', '1.20.1'), self.events.append)

    def test_no_events_before_tasks_run(self):
        self._client()
        assert self.events == []

    def test_login_sequence(self):
        client = self._client()
        self.tasks.run_pending()

        assert self.events == [
            LoggedIn(),
            ServerMessage('Bob joined the game'),
            PlayerJoined('Bob'),
            Ended('test over'),
        ]
        assert self.tasks.sleeps[0] == SimulatedClient.LOGIN_DELAY
        assert not client.is_ready

    def test_unreachable_host(self):
        self._client(host='unreachable')
        self.tasks.run_pending()

        assert len(self.events) == 1
        assert isinstance(self.events[0], Ended)
        assert 'ECONNREFUSED' in self.events[0].reason

    def test_walking_forward(self):
        client = self._client(stop_after_sleeps=4)
        client.set_control_state('forward', True)
        self.tasks.run_pending()
        assert client.position.z < SimulatedClient.SPAWN.z

    def test_chat_and_commands(self):
        client = self._client(stop_after_sleeps=100)
        self.tasks.pending.clear()  # skip the login loop
        client._logged_in = True

        client.chat('hello')
        client.chat('/help')
        self.tasks.run_pending()

        assert self.events[0] == ChatReceived('Bob', 'hello')
        help_lines = [e.text for e in self.events if isinstance(e, ServerMessage)]
        assert help_lines[0].startswith('--- Showing help page')

    def test_quit_ends_once(self):
        client = self._client(stop_after_sleeps=100)
        client.quit()
        client.quit()
        self.tasks.pending = [t for t in self.tasks.pending if t[0] != client._run]
        self.tasks.run_pending()
        assert self.events == [Ended('Quit')]
