"""Tests for hcloud_config.images.reference."""

from __future__ import annotations

import pytest

from hcloud_config.errors import ConfigValidationError, ResolutionError
from hcloud_config.images.reference import (
    ImageReference,
    glob_match,
    parse_image_reference,
)

DEFAULTS = {"default_org": "acme", "default_repo": "shop"}


class TestParseImageReference:
    def test_bare_tag(self):
        ref = parse_image_reference("latest", **DEFAULTS)
        assert ref == ImageReference("ghcr.io", "acme", "shop", "latest")

    def test_repo_and_tag(self):
        ref = parse_image_reference("api:v2", **DEFAULTS)
        assert ref == ImageReference("ghcr.io", "acme", "api", "v2")

    def test_org_repo_tag(self):
        ref = parse_image_reference("org/test:v1")
        assert ref == ImageReference("ghcr.io", "org", "test", "v1")

    def test_full_reference(self):
        ref = parse_image_reference("docker.io/nginxdemos/hello:latest")
        assert ref.url == "docker.io"
        assert ref.reference == "docker.io/nginxdemos/hello:latest"

    def test_missing_tag_defaults_to_latest(self):
        assert parse_image_reference("org/app").tag == "latest"

    def test_registry_with_port(self):
        ref = parse_image_reference("localhost:5000/org/app")
        assert ref == ImageReference("localhost:5000", "org", "app", "latest")

    def test_wildcards(self):
        ref = parse_image_reference("ghcr.io/acme/*:*")
        assert ref.has_wildcard
        assert (ref.repo, ref.tag) == ("*", "*")

    @pytest.mark.parametrize("text", ["", "  ", "*", ":", "*:*"])
    def test_empty_rejected(self, text):
        with pytest.raises(ConfigValidationError, match="empty"):
            parse_image_reference(text, **DEFAULTS)

    def test_not_a_string(self):
        with pytest.raises(ConfigValidationError, match="expected string"):
            parse_image_reference(5)

    def test_missing_default_org(self):
        with pytest.raises(ResolutionError, match="organization"):
            parse_image_reference("latest")

    def test_missing_default_repo(self):
        with pytest.raises(ResolutionError, match="repository"):
            parse_image_reference("latest", default_org="acme")


class TestGlob:
    def test_anchored(self):
        assert glob_match("app-*", "app-web")
        assert not glob_match("app-*", "my-app-web")

    def test_regex_characters_are_literal(self):
        assert not glob_match("v1.0", "v1x0")
        assert glob_match("v1.*", "v1.2.3")
