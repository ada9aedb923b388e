"""
Relay Protocol Handler Test Suite

Frame decoding, dispatch by type, error frames and socket close handling.
Run with: python -m pytest tests/test_relay.py -v
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json
import pytest
from unittest.mock import MagicMock

from engine.lifecycle import DisconnectReason
from engine.messages import ERROR, INVALID_MESSAGE_FORMAT, UNKNOWN_MESSAGE_TYPE
from engine.relay import FrameError, RelayHandler, SocketIOTransport, decode_frame


class TestDecodeFrame:

    def test_dict_frame(self):
        assert decode_frame({'type': 'send_chat', 'data': {'a': 1}}) == ('send_chat', {'a': 1})

    def test_json_text_frame(self):
        raw = json.dumps({'type': 'disconnect_bot', 'data': {'connectionId': 'c1'}})
        assert decode_frame(raw) == ('disconnect_bot', {'connectionId': 'c1'})

    def test_missing_data_defaults_to_empty(self):
        assert decode_frame({'type': 'x'}) == ('x', {})

    @pytest.mark.parametrize("raw", [
        "not json {",
        "[1, 2, 3]",
        42,
        None,
        {'data': {}},
        {'type': 7, 'data': {}},
        {'type': '', 'data': {}},
        {'type': 'send_chat', 'data': 'hello'},
    ])
    def test_malformed(self, raw):
        with pytest.raises(FrameError):
            decode_frame(raw)


class TestRelayDispatch:

    def setup_method(self):
        self.controller = MagicMock()
        self.controller.close_socket.return_value = 0
        self.executor = MagicMock()
        self.transport = MagicMock()
        self.relay = RelayHandler(self.controller, self.executor, self.transport)

    def _errors(self):
        return [c.args for c in self.transport.send.call_args_list if c.args[1] == ERROR]

    def test_connect_bot(self):
        self.relay.on_frame('sid-1', {'type': 'connect_bot', 'data': {
            'connectionId': 'c1', 'username': 'Bob', 'serverIp': 'host:25566', 'version': '1.20.1',
        }})
        self.controller.connect.assert_called_once_with('sid-1', 'c1', 'Bob', 'host:25566', '1.20.1')

    def test_disconnect_bot(self):
        self.relay.on_frame('sid-1', {'type': 'disconnect_bot', 'data': {'connectionId': 'c1'}})
        self.controller.disconnect.assert_called_once_with('c1', DisconnectReason.USER)

    def test_send_chat(self):
        self.relay.on_frame('sid-1', {'type': 'send_chat', 'data': {'connectionId': 'c1', 'message': 'hi'}})
        self.executor.send_chat.assert_called_once_with('c1', 'hi')

    def test_send_command(self):
        self.relay.on_frame('sid-1', {'type': 'send_command', 'data': {'connectionId': 'c1', 'command': '/help'}})
        self.executor.send_command.assert_called_once_with('c1', '/help')

    def test_move_bot(self):
        self.relay.on_frame('sid-1', {'type': 'move_bot', 'data': {
            'connectionId': 'c1', 'direction': 'jump', 'action': 'start',
        }})
        self.executor.move.assert_called_once_with('c1', 'jump', 'start')

    def test_json_text_is_accepted(self):
        self.relay.on_frame('sid-1', json.dumps({'type': 'send_chat', 'data': {'connectionId': 'c1', 'message': 'hi'}}))
        self.executor.send_chat.assert_called_once_with('c1', 'hi')

    def test_unknown_type(self):
        self.relay.on_frame('sid-1', {'type': 'fly_bot', 'data': {}})
        assert self._errors() == [('sid-1', ERROR, {'message': UNKNOWN_MESSAGE_TYPE})]
        self.controller.connect.assert_not_called()

    def test_malformed_frame(self):
        self.relay.on_frame('sid-1', 'garbage')
        assert self._errors() == [('sid-1', ERROR, {'message': INVALID_MESSAGE_FORMAT})]

    def test_missing_field(self):
        self.relay.on_frame('sid-1', {'type': 'connect_bot', 'data': {'connectionId': 'c1'}})
        assert self._errors() == [('sid-1', ERROR, {'message': INVALID_MESSAGE_FORMAT})]
        self.controller.connect.assert_not_called()

    def test_handler_exception_becomes_error_frame(self):
        self.executor.send_chat.side_effect = RuntimeError("kaboom")
        self.relay.on_frame('sid-1', {'type': 'send_chat', 'data': {'connectionId': 'c1', 'message': 'hi'}})
        assert self._errors() == [('sid-1', ERROR, {'message': 'kaboom'})]

    def test_socket_stays_usable_after_bad_frames(self):
        self.relay.on_frame('sid-1', 'garbage')
        self.relay.on_frame('sid-1', {'type': 'nope'})
        self.relay.on_frame('sid-1', {'type': 'send_chat', 'data': {'connectionId': 'c1', 'message': 'hi'}})
        self.executor.send_chat.assert_called_once_with('c1', 'hi')

    def test_open_and_close(self):
        self.relay.on_open('sid-1')
        self.transport.register.assert_called_once_with('sid-1')

        self.relay.on_close('sid-1')
        self.transport.unregister.assert_called_once_with('sid-1')
        self.controller.close_socket.assert_called_once_with('sid-1')


class TestSocketIOTransport:

    def setup_method(self):
        self.socketio = MagicMock()
        self.transport = SocketIOTransport(self.socketio)

    def test_send_to_open_socket(self):
        self.transport.register('sid-1')
        assert self.transport.send('sid-1', 'ping_update', {'ping': 5}) is True
        self.socketio.emit.assert_called_once_with(
            'message', {'type': 'ping_update', 'data': {'ping': 5}}, to='sid-1', namespace='/')

    def test_send_to_closed_socket_dropped(self):
        self.transport.register('sid-1')
        self.transport.unregister('sid-1')
        assert self.transport.send('sid-1', 'ping_update', {'ping': 5}) is False
        self.socketio.emit.assert_not_called()

    def test_emit_failure_is_logged_not_raised(self):
        self.transport.register('sid-1')
        self.socketio.emit.side_effect = RuntimeError("transport closed")
        assert self.transport.send('sid-1', 'error', {'message': 'x'}) is False

    def test_open_count(self):
        self.transport.register('a')
        self.transport.register('b')
        self.transport.register('a')
        assert self.transport.open_count() == 2
