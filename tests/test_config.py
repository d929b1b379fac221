"""Tests for mirror settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from zkmirror.common.config import (
    MirrorSettings,
    load_descriptor,
    load_embedded,
    load_mirror_settings,
)
from zkmirror.common.exceptions import ConfigError

DESCRIPTOR = {
    "address": "zk1:2181",
    "scheme": "digest",
    "auth": "user:secret",
    "zkrootpath": "/cfg",
    "filepath": "config/zktemp",
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in (
        "ZKMIRROR_ADDRESS", "ZKMIRROR_SCHEME", "ZKMIRROR_AUTH",
        "ZKMIRROR_ROOT_PATH", "ZKMIRROR_FILE_PATH",
    ):
        monkeypatch.delenv(var, raising=False)


def test_load_from_dict():
    settings = load_mirror_settings(DESCRIPTOR)

    assert settings.address == "zk1:2181"
    assert settings.scheme == "digest"
    assert settings.auth == "user:secret"
    assert settings.root_path == "/cfg"
    assert settings.file_path == "config/zktemp"
    assert settings.connect_timeout == 1.0
    assert settings.root_key == "configuration"


def test_output_path_appends_json():
    settings = load_mirror_settings(DESCRIPTOR)

    assert settings.output_path == Path("config/zktemp.json")


def test_address_list_is_joined():
    settings = load_mirror_settings({**DESCRIPTOR, "address": ["zk1:2181", "zk2:2181"]})

    assert settings.hosts == "zk1:2181,zk2:2181"


def test_hosts_strips_whitespace():
    settings = MirrorSettings(address=" zk1:2181 , zk2:2181,", root_path="/cfg", file_path="out")

    assert settings.hosts == "zk1:2181,zk2:2181"


def test_scheme_and_auth_are_optional():
    data = {k: v for k, v in DESCRIPTOR.items() if k not in ("scheme", "auth")}

    settings = load_mirror_settings(data)

    assert settings.scheme == ""
    assert settings.auth == ""


@pytest.mark.parametrize("missing", ["address", "zkrootpath", "filepath"])
def test_missing_required_setting(missing):
    data = {k: v for k, v in DESCRIPTOR.items() if k != missing}

    with pytest.raises(ConfigError, match=missing):
        load_mirror_settings(data)


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("ZKMIRROR_ADDRESS", "zk9:2181")
    monkeypatch.setenv("ZKMIRROR_ROOT_PATH", "/other")

    settings = load_mirror_settings(DESCRIPTOR)

    assert settings.address == "zk9:2181"
    assert settings.root_path == "/other"
    assert settings.file_path == "config/zktemp"


def test_invalid_timing_setting():
    with pytest.raises(ConfigError):
        load_mirror_settings({**DESCRIPTOR, "connect_timeout": "soon"})


def test_load_yaml_descriptor(tmp_path):
    path = tmp_path / "zkConfig.yaml"
    path.write_text(yaml.safe_dump(DESCRIPTOR), encoding="utf-8")

    assert load_descriptor(path).root_path == "/cfg"


def test_load_json_descriptor(tmp_path):
    path = tmp_path / "zkConfig.json"
    path.write_text(
        '{"address": "zk1:2181", "scheme": "", "auth": "",'
        ' "zkrootpath": "/cfg", "filepath": "out"}',
        encoding="utf-8",
    )

    assert load_descriptor(path).file_path == "out"


def test_missing_descriptor(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_descriptor(tmp_path / "absent.yaml")


def test_non_mapping_descriptor(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_descriptor(path)


def test_load_embedded_section():
    host = {"server": {"port": 80}, "zkConfig": DESCRIPTOR}

    assert load_embedded(host).address == "zk1:2181"


def test_load_embedded_custom_section():
    host = {"mirror": DESCRIPTOR}

    assert load_embedded(host, section="mirror").root_path == "/cfg"


def test_load_embedded_missing_section():
    with pytest.raises(ConfigError, match="zkConfig"):
        load_embedded({"server": {}})
