import json

import pytest

from memodesk.config import Config, app_dir, app_subdir


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "MEMODESK_API_KEY", "OPENAI_API_KEY",
        "MEMODESK_BASE_URL", "OPENAI_BASE_URL",
        "MEMODESK_MODEL", "OPENAI_MODEL",
        "MEMODESK_DEBUG", "MEMODESK_HOME",
    ):
        monkeypatch.delenv(name, raising=False)


def test_load_config_from_json(tmp_path):
    """Test loading configuration from config.json."""
    (tmp_path / "config.json").write_text(json.dumps({
        "api_key": "test-key-from-json",
        "model_id": "model-from-json",
        "compact_model_id": "small-model",
        "reasoning_enabled": True,
        "request_timeout": 30,
    }))

    config = Config.load(tmp_path)

    assert config.api_key == "test-key-from-json"
    assert config.model_id == "model-from-json"
    assert config.compact_model_id == "small-model"
    assert config.reasoning_enabled is True
    assert config.request_timeout == 30.0


def test_missing_file_gives_defaults(tmp_path):
    config = Config.load(tmp_path)
    assert config.api_key == ""
    assert config.model_id == ""
    assert config.reasoning_enabled is False


def test_corrupt_file_gives_defaults(tmp_path):
    (tmp_path / "config.json").write_text("{not json")
    config = Config.load(tmp_path)
    assert config.api_key == ""


def test_wrong_types_and_unknown_keys_are_ignored(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({
        "api_key": 123,
        "reasoning_enabled": "yes",
        "channels_json": "[]",
        "model_id": "ok",
    }))
    config = Config.load(tmp_path)
    assert config.api_key == ""
    assert config.reasoning_enabled is False
    assert config.model_id == "ok"


def test_env_override_json(tmp_path, monkeypatch):
    """Test that environment variables override config.json."""
    (tmp_path / "config.json").write_text(json.dumps({"model_id": "model-from-json"}))
    monkeypatch.setenv("MEMODESK_MODEL", "model-from-env")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")

    config = Config.load(tmp_path)

    assert config.model_id == "model-from-env"
    assert config.api_key == "sk-env"


def test_load_without_env_uses_file_only(tmp_path, monkeypatch):
    (tmp_path / "config.json").write_text(json.dumps({"model_id": "model-from-json"}))
    monkeypatch.setenv("MEMODESK_MODEL", "model-from-env")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")

    config = Config.load(tmp_path, env=False)

    assert config.model_id == "model-from-json"
    assert config.api_key == ""


def test_memodesk_home_env(tmp_path, monkeypatch):
    monkeypatch.setenv("MEMODESK_HOME", str(tmp_path / "home"))
    assert app_dir() == tmp_path / "home"
    assert app_subdir("packs").is_dir()


def test_save_round_trip(tmp_path):
    config = Config.load(tmp_path)
    config.api_key = "sk-saved"
    config.system_prompt = "Answer in French."
    assert config.save()

    stored = json.loads((tmp_path / "config.json").read_text())
    assert "home" not in stored
    assert Config.load(tmp_path).system_prompt == "Answer in French."


def test_set_value_coerces_types(tmp_path):
    config = Config.load(tmp_path)
    config.set_value("reasoning_enabled", "true")
    config.set_value("request_timeout", "12.5")
    config.set_value("model_id", "gpt-4o-mini")
    assert config.reasoning_enabled is True
    assert config.request_timeout == 12.5
    assert config.model_id == "gpt-4o-mini"

    with pytest.raises(KeyError):
        config.set_value("home", "/tmp")
    with pytest.raises(ValueError):
        config.set_value("debug", "maybe")


def test_validate_requires_api_key(tmp_path):
    config = Config.load(tmp_path)
    assert len(config.validate()) == 1
    config.api_key = "sk"
    assert config.validate() == []


def test_compact_relay_settings(tmp_path):
    config = Config.load(tmp_path)
    config.api_key = "sk"
    config.model_id = "big"
    config.reasoning_enabled = True

    assert config.relay_settings().model == "big"
    assert config.relay_settings().reasoning_enabled is True
    assert config.relay_settings(compact=True).model == "big"
    assert config.relay_settings(compact=True).reasoning_enabled is False

    config.compact_model_id = "small"
    assert config.relay_settings(compact=True).model == "small"
