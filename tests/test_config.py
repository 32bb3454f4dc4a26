"""Tests for INI configuration loading, validation and migration."""

import configparser

import pytest

from media_sync.exceptions import ConfigurationError
from media_sync.models.config import SyncConfig, parse_offline_users
from media_sync.models.items import OfflineUser
from media_sync.storage.config_manager import ConfigManager

SETTINGS = {
    "server_url": "http://media.local:8096",
    "server_id": "srv-1",
    "access_token": "token",
    "device_id": "device-1",
    "offline_users": "u1:alice, u2:bob",
}


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "media-sync" / "config.ini"
    ConfigManager(path).save_new_config(SETTINGS)
    return path


def test_saved_config_loads_back(config_file):
    config = ConfigManager(config_file).load_config()

    assert config.server_url == "http://media.local:8096/"
    assert config.server_id == "srv-1"
    assert config.download_attempts == 3
    assert config.json_log is False
    assert config.data_dir == str(config_file.parent / "data")
    assert config.config_path == str(config_file.parent)


def test_target_carries_offline_users(config_file):
    target = ConfigManager(config_file).load_config().target()

    assert target.id == "srv-1"
    assert target.offline_user_ids == ["u1", "u2"]
    assert target.users[0].name == "alice"


def test_cli_options_override_file(config_file, tmp_path):
    config = ConfigManager(config_file).load_config(
        {"data_dir": str(tmp_path / "elsewhere"), "json_log": True}
    )

    assert config.data_dir == str(tmp_path / "elsewhere")
    assert config.json_log is True


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="media-sync init"):
        ConfigManager(tmp_path / "nope.ini").load_config()


def test_missing_keys_are_migrated(tmp_path):
    path = tmp_path / "config.ini"
    path.write_text(
        "[DEFAULT]\n"
        "server_url = http://media.local\n"
        "server_id = srv-1\n"
        "access_token = token\n"
        "device_id = device-1\n",
        encoding="utf-8",
    )

    config = ConfigManager(path).load_config()

    assert config.request_timeout == 60
    parser = configparser.ConfigParser(interpolation=None)
    parser.read(path, encoding="utf-8")
    assert parser["DEFAULT"]["download_attempts"] == "3"
    assert parser["DEFAULT"]["offline_users"] == ""


def test_non_numeric_value_is_a_configuration_error(config_file):
    text = config_file.read_text(encoding="utf-8")
    config_file.write_text(
        text.replace("download_attempts = 3", "download_attempts = many"),
        encoding="utf-8",
    )

    with pytest.raises(ConfigurationError):
        ConfigManager(config_file).load_config()


@pytest.mark.parametrize(
    "override",
    [
        {"server_url": "media.local:8096"},
        {"access_token": ""},
        {"device_id": ""},
        {"download_attempts": 0},
        {"request_timeout": 1},
    ],
)
def test_invalid_settings_are_rejected(override):
    with pytest.raises(ValueError):
        SyncConfig(**{**SETTINGS, "data_dir": "/tmp/data", **override})


def test_invalid_file_raises_configuration_error(tmp_path):
    path = tmp_path / "config.ini"
    ConfigManager(path).save_new_config({**SETTINGS, "access_token": ""})

    with pytest.raises(ConfigurationError, match="validation failed"):
        ConfigManager(path).load_config()


def test_offline_user_list_parsing():
    assert parse_offline_users(" u1:alice ,u2,, u3:") == [
        OfflineUser(id="u1", name="alice"),
        OfflineUser(id="u2", name=""),
        OfflineUser(id="u3", name=""),
    ]
