"""Tests for hcloud_config.state."""

from __future__ import annotations

import json

import pytest

from hcloud_config.config.loader import parse_config
from hcloud_config.errors import ResolutionError
from hcloud_config.state.details import server_details_mapping
from hcloud_config.state.store import (
    load_tf_state,
    mask_sensitive_attributes,
    mask_state_file,
)


def _key_state():
    return {
        "resources": [
            {
                "type": "hcloud_ssh_key",
                "name": "sysadmin",
                "instances": [
                    {
                        "attributes": {"name": "sysadmin", "public_key": "ssh-ed25519 A"},
                        "sensitive_attributes": [
                            [{"type": "get_attr", "value": "public_key"}]
                        ],
                    }
                ],
            }
        ]
    }


# ── TestStore ────────────────────────────────────────────────────────────


class TestStore:
    def test_missing_state(self, tmp_path):
        with pytest.raises(ResolutionError, match="Run create-server-config first"):
            load_tf_state(tmp_path / "terraform.tfstate")

    def test_invalid_state(self, tmp_path):
        path = tmp_path / "terraform.tfstate"
        path.write_text("{")
        with pytest.raises(ResolutionError, match="not valid JSON"):
            load_tf_state(path)

    def test_mask_in_place(self):
        state = _key_state()
        assert mask_sensitive_attributes(state) == 1
        attributes = state["resources"][0]["instances"][0]["attributes"]
        assert attributes == {"name": "sysadmin", "public_key": None}

    def test_mask_file(self, tmp_path):
        path = tmp_path / "terraform.tfstate"
        path.write_text(json.dumps(_key_state()))
        assert mask_state_file(path) == 1
        assert "ssh-ed25519" not in path.read_text()
        assert mask_state_file(path) == 0

    def test_mask_missing_file(self, tmp_path):
        assert mask_state_file(tmp_path / "terraform.tfstate") == 0


# ── TestServerDetails ────────────────────────────────────────────────────


class TestServerDetails:
    def test_merges_attributes(self, sample_config, make_state, addresses):
        registry = parse_config(sample_config)
        details = server_details_mapping(make_state(addresses), registry)
        assert details["web-1"]["ipv4_address"] == "10.0.0.1"
        assert details["web-1"]["server_type"] == "cx11"
        assert details["db-1"]["id"] == "2"

    def test_missing_resource(self, sample_config, make_state):
        registry = parse_config(sample_config)
        with pytest.raises(ResolutionError, match='resource "db_1" for server "db-1"'):
            server_details_mapping(make_state({"web-1": "10.0.0.1"}), registry)

    def test_missing_instance(self, sample_config, make_state):
        state = make_state({"web-1": "10.0.0.1", "db-1": "10.0.0.2"})
        state["resources"][1]["instances"][0]["attributes"]["name"] = "other"
        registry = parse_config(sample_config)
        with pytest.raises(ResolutionError, match='instance of server "db-1"'):
            server_details_mapping(state, registry)
