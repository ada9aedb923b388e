"""
Protocol client contract tests: address parsing, backend loading, positions.

Run with: python -m pytest tests/test_client.py -v
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from engine.client import AddressError, load_client_factory, parse_server_address
from engine.events import Position
from engine.simulated_client import SimulatedClient


class TestParseServerAddress:

    def test_host_and_port(self):
        assert parse_server_address("host:25566") == ("host", 25566)

    def test_missing_port_defaults(self):
        assert parse_server_address("play.example.net") == ("play.example.net", 25565)

    def test_empty_port_defaults(self):
        assert parse_server_address("localhost:") == ("localhost", 25565)

    def test_custom_default_port(self):
        assert parse_server_address("localhost", default_port=19132) == ("localhost", 19132)

    def test_splits_on_first_colon_only(self):
        """Anything after the first colon is the port, so extra colons are invalid"""
        with pytest.raises(AddressError):
            parse_server_address("host:25565:1")

    def test_non_numeric_port(self):
        with pytest.raises(AddressError):
            parse_server_address("host:abc")

    def test_port_out_of_range(self):
        with pytest.raises(AddressError):
            parse_server_address("host:70000")

    def test_empty_host(self):
        with pytest.raises(AddressError):
            parse_server_address(":25565")

    def test_address_error_is_value_error(self):
        assert issubclass(AddressError, ValueError)


class TestLoadClientFactory:

    def test_resolves_module_callable(self):
        factory = load_client_factory("engine.simulated_client:SimulatedClient")
        assert factory is SimulatedClient

    def test_rejects_target_without_callable(self):
        with pytest.raises(ValueError):
            load_client_factory("engine.simulated_client")

    def test_missing_module(self):
        with pytest.raises(ImportError):
            load_client_factory("no_such_backend_module:factory")


class TestPosition:

    def test_two_decimal_text(self):
        assert Position(1.0, 64.456, -3.333).to_dict() == {'x': '1.00', 'y': '64.46', 'z': '-3.33'}
