"""Tests for hcloud_config.config.models and hcloud_config.config.registry."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from hcloud_config.config.models import Server, Service, SSHKey, Volume
from hcloud_config.config.registry import ResourceRegistry
from hcloud_config.errors import ConfigValidationError, ResolutionError


def _server(name="web-1", **overrides):
    options = {"server_type": "cx11", "ssh_keys": ["k"], "services": ["app"]}
    options.update(overrides)
    return Server.build(name, options)


# ── TestSSHKey ───────────────────────────────────────────────────────


class TestSSHKey:
    def test_defaults_user_to_root(self):
        key = SSHKey.build("k", {"public_key": "ssh-ed25519 AAAA"})
        assert key.user == "root"
        assert key.private_key is None

    def test_requires_a_key(self):
        with pytest.raises(ConfigValidationError, match="either private_key or public_key"):
            SSHKey.build("k", {"user": "admin"})

    def test_rejects_non_string_user(self):
        with pytest.raises(ConfigValidationError, match='field "user" expected string, got number'):
            SSHKey.build("k", {"user": 1, "public_key": "x"})


# ── TestServer ───────────────────────────────────────────────────────


class TestServer:
    def test_valid(self):
        server = _server(environment={"A": 1, "B": True, "C": None})
        assert server.location == ""
        assert server.environment == {"A": "1", "B": "true", "C": ""}
        assert server.volumes == []

    @pytest.mark.parametrize("name", ["Web", "-web", "w", "web_1", "a" * 64])
    def test_invalid_names(self, name):
        with pytest.raises(ConfigValidationError, match="server name must match"):
            _server(name)

    def test_wrong_type_names_entity_and_field(self):
        with pytest.raises(ConfigValidationError) as exc:
            _server(ssh_keys="sysadmin")
        message = str(exc.value)
        assert 'server "web-1"' in message
        assert 'field "ssh_keys" expected list, got string' in message

    def test_missing_field(self):
        with pytest.raises(ConfigValidationError, match='field "server_type" is required'):
            Server.build("web-1", {"ssh_keys": ["k"], "services": ["a"]})

    def test_empty_services(self):
        with pytest.raises(ConfigValidationError, match='field "services" must not be empty'):
            _server(services=[])

    def test_unknown_field(self):
        with pytest.raises(ConfigValidationError, match='field "colour" is not a known field'):
            _server(colour="red")

    def test_options_must_be_mapping(self):
        with pytest.raises(ConfigValidationError, match="expected mapping, got list"):
            Server.build("web-1", ["cx11"])

    def test_frozen(self):
        server = _server()
        with pytest.raises(ValidationError):
            server.server_type = "cx21"

    def test_port_out_of_range(self):
        with pytest.raises(ConfigValidationError, match="quote port strings"):
            _server(ports=[70000])

    def test_to_details(self):
        assert _server().to_details()["name"] == "web-1"


# ── TestVolume ───────────────────────────────────────────────────────


class TestVolume:
    def test_integer_size(self):
        assert Volume.build("data", {"size": 10, "path": "/data"}).size == 10

    def test_missing_size(self):
        with pytest.raises(ConfigValidationError, match='volume "data": field "size" is required'):
            Volume.build("data", {"path": "/data"})

    def test_non_positive_size(self):
        with pytest.raises(ConfigValidationError, match="greater than 0"):
            Volume.build("data", {"size": 0, "path": "/data"})

    def test_string_size(self):
        with pytest.raises(ConfigValidationError, match="expected number, got string"):
            Volume.build("data", {"size": "10", "path": "/data"})


# ── TestService ──────────────────────────────────────────────────────


class TestService:
    def test_integer_ports_become_strings(self):
        service = Service.build("app", {"images": ["x/y:z"], "ports": [80, "80:8080"]})
        assert service.ports == ["80", "80:8080"]

    def test_requires_images(self):
        with pytest.raises(ConfigValidationError, match='field "images" is required'):
            Service.build("app", {})

    def test_base_60_port_rejected(self):
        with pytest.raises(ConfigValidationError, match='field "ports" port 180022 is out of range'):
            Service.build("app", {"images": ["x/y:z"], "ports": [180022]})


# ── TestRegistry ─────────────────────────────────────────────────────


class TestRegistry:
    def _registry(self):
        registry = ResourceRegistry()
        registry.add(SSHKey.build("k", {"private_key": "p"}))
        registry.add(SSHKey.build("pub", {"public_key": "q"}))
        registry.add(Service.build("app", {"images": ["a/b:c"]}))
        registry.add(Service.build("db", {"images": ["a/d:e"]}))
        registry.add(Volume.build("data", {"size": 1, "path": "/d"}))
        registry.add(
            _server(ssh_keys=["k", "pub"], services=["db", "app"], volumes=["data"])
        )
        return registry

    def test_duplicate_name(self):
        registry = self._registry()
        with pytest.raises(ConfigValidationError, match='Duplicate service name "app"'):
            registry.add(Service.build("app", {"images": ["x/y"]}))

    def test_same_name_different_kind(self):
        registry = self._registry()
        registry.add(Volume.build("app", {"size": 1, "path": "/a"}))
        assert registry.get_volume("app") is not None

    def test_lookups(self):
        registry = self._registry()
        assert registry.get_server("web-1").name == "web-1"
        assert registry.get_service("db").name == "db"
        assert registry.get_ssh_key("pub").public_key == "q"
        assert registry.get_volume("data").path == "/d"
        assert registry.get_server("web-2") is None
        assert registry.get_service("nope") is None
        assert registry.get_ssh_key("nope") is None
        assert registry.get_volume("nope") is None

    def test_filters(self):
        registry = self._registry()
        assert [s.name for s in registry.filter_servers(lambda s: "app" in s.services)] == [
            "web-1"
        ]
        assert [s.name for s in registry.filter_services(lambda s: s.name != "app")] == ["db"]
        assert [k.name for k in registry.filter_ssh_keys(lambda k: k.private_key)] == ["k"]
        assert [v.name for v in registry.filter_volumes(lambda v: v.size > 0)] == ["data"]
        assert registry.filter_servers(lambda s: False) == []

    def test_services_for_keeps_config_order(self):
        registry = self._registry()
        server = registry.get_server("web-1")
        assert [s.name for s in registry.services_for(server)] == ["app", "db"]

    def test_ssh_keys_for(self):
        registry = self._registry()
        server = registry.get_server("web-1")
        assert [k.name for k in registry.ssh_keys_for(server)] == ["k", "pub"]
        assert [k.name for k in registry.ssh_keys_for(server, private=True)] == ["k"]
        assert [k.name for k in registry.ssh_keys_for(server, public=True)] == ["pub"]

    def test_volume_owners(self):
        registry = self._registry()
        registry.add(Volume.build("spare", {"size": 1, "path": "/s"}))
        assert registry.volume_owners() == {"data": ["web-1"], "spare": []}

    def test_check_references_lists_all(self):
        registry = ResourceRegistry()
        registry.add(_server(ssh_keys=["missing-key"], services=["missing-svc"]))
        with pytest.raises(ResolutionError) as exc:
            registry.check_references()
        assert 'unknown ssh-key "missing-key"' in str(exc.value)
        assert 'unknown service "missing-svc"' in str(exc.value)
