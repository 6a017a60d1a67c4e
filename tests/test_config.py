import json

import pytest

from dnet_tui.config import Config, local_config_path, user_config_path

pytestmark = pytest.mark.core


def test_load_creates_local_defaults_when_nothing_exists():
    config = Config.load()
    assert config.api_host == "127.0.0.1"
    assert config.api_port == 8080
    assert local_config_path().exists()
    assert json.loads(local_config_path().read_text())["max_tokens"] == 2000


def test_local_file_wins_over_user_file():
    user_config_path().parent.mkdir(parents=True)
    user_config_path().write_text(json.dumps({"api_port": 9100}))
    assert Config.load().api_port == 9100

    local_config_path().write_text(json.dumps({"api_port": 9200}))
    assert Config.load().api_port == 9200
    assert Config.current_location() == "./dnet.json"


def test_explicit_path(tmp_path):
    path = tmp_path / "custom.json"
    path.write_text(json.dumps({"api_host": "10.1.1.1", "kv_bits": "4bit"}))
    config = Config.load(path)
    assert config.api_url() == "http://10.1.1.1:8080"
    assert config.kv_bits == "4bit"


def test_save_defaults_to_user_dir():
    config = Config(api_port=8181)
    path = config.save()
    assert path == user_config_path()
    assert Config.from_file(path).api_port == 8181


def test_write_setting_parses_and_validates():
    config = Config()
    config.write_setting("api_port", " 9000 ")
    config.write_setting("temperature", "1.2")
    config.write_setting("kv_bits", "fp16")
    assert config.api_port == 9000
    assert config.temperature == pytest.approx(1.2)
    assert config.read_setting("kv_bits") == "fp16"


@pytest.mark.parametrize(
    "name,raw",
    [
        ("api_port", "0"),
        ("api_port", "http"),
        ("temperature", "3.5"),
        ("kv_bits", "2bit"),
        ("devices_refresh_interval", "0"),
        ("api_host", "  "),
        ("nonexistent", "1"),
    ],
)
def test_write_setting_rejects_bad_values(name, raw):
    config = Config()
    with pytest.raises(ValueError):
        config.write_setting(name, raw)
    assert config.api_port == 8080
