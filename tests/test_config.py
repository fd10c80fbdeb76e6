"""Tests for configuration loading and JSON helpers."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from conftest import user_key
from json_helpers import prepare_for_json, serialise_endpoints
from modules.value_key import ValueGenre
from yaml_loader import CONFIG_ENV_VAR, get_conf, load_config, load_yaml_config


class TestYamlLoader:

    def test_load(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("mqtt:\n  broker_host: mqtt.local\n  prefix: zwave\n")
        config = load_yaml_config(path)
        assert get_conf(config, "mqtt", "broker_host") == "mqtt.local"
        assert get_conf(config, "mqtt", "broker_port", 1883) == 1883
        assert get_conf(config, "web", "port", 8000) == 8000

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_yaml_config(path) == {}

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_yaml_config(tmp_path / "nope.yaml")

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("mqtt: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_yaml_config(path)

    def test_load_config_from_env(self, tmp_path, monkeypatch):
        path = tmp_path / "bridge.yaml"
        path.write_text("mqtt:\n  qos: 1\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert load_config() == {"mqtt": {"qos": 1}}

    def test_load_config_missing_is_empty(self, tmp_path):
        assert load_config(tmp_path / "absent.yaml") == {}

    def test_shipped_config_parses(self):
        config = load_yaml_config(Path(__file__).parent.parent / "config" / "config.yaml")
        assert config["devices"][0]["values"][0]["command_class_id"] == 0x26


class TestJsonHelpers:

    def test_endpoints(self):
        endpoints = {"1/32/1": user_key(1, 0x20), "0/x": user_key(2, 0x32)}
        serialised = serialise_endpoints(endpoints)
        assert list(serialised) == ["0/x", "1/32/1"]
        assert serialised["1/32/1"]["command_class_id"] == 0x20
        assert serialised["1/32/1"]["genre"] == "user"

    def test_prepare_nested(self):
        data = {"key": user_key(1, 0x20), "genre": ValueGenre.USER, "raw": b"\xff\x00", "topics": ("a", "b")}
        assert prepare_for_json(data) == {
            "key": user_key(1, 0x20).to_dict(),
            "genre": "user",
            "raw": "ff00",
            "topics": ["a", "b"],
        }
