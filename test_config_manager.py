#!/usr/bin/env python3
"""
Tests for configuration loading, environment overrides and validation
"""

import json
import os
from unittest.mock import patch

import pytest

from rss_tts.config import ConfigManager, LocalModelConfig, PipelineConfig
from rss_tts.utils.error_handling import ConfigError

FEED = "https://example.com/rss"


def write_config(tmp_path, **values):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(values), encoding='utf-8')
    return ConfigManager(str(path))


@pytest.fixture(autouse=True)
def clean_environment(tmp_path, monkeypatch):
    """Keep real credentials and .env files out of the tests"""
    monkeypatch.chdir(tmp_path)
    with patch.dict(os.environ, {}, clear=True):
        yield


class TestLoading:

    def test_defaults(self, tmp_path):
        config = write_config(tmp_path, feeds=[FEED], api_key="k").get_pipeline_config()

        assert config.concurrent_workers == 4
        assert config.max_item_per_feed == 10
        assert config.item_since == 24
        assert config.speech_speed == 1.0
        assert config.use_natural_voice is False
        assert config.backend == "remote"
        assert config.default_language == "en-US"

    def test_queue_capacity(self, tmp_path):
        config = write_config(tmp_path, feeds=[FEED, FEED + "2", FEED + "3"], max_item_per_feed=7,
                              api_key="k").get_pipeline_config()
        assert config.queue_capacity == 21

    def test_api_key_from_environment(self, tmp_path):
        os.environ['GOOGLE_TTS_API_KEY'] = "from-env"
        config = write_config(tmp_path, feeds=[FEED]).get_pipeline_config()
        assert config.api_key == "from-env"

    def test_credential_path_exported(self, tmp_path):
        credentials = tmp_path / "sa.json"
        credentials.write_text("{}")

        config = write_config(tmp_path, feeds=[FEED], credential_path=str(credentials)).get_pipeline_config()

        assert config.credential_path == str(credentials)
        assert os.environ['GOOGLE_APPLICATION_CREDENTIALS'] == str(credentials)

    def test_credential_path_from_environment(self, tmp_path):
        credentials = tmp_path / "sa.json"
        credentials.write_text("{}")
        os.environ['GOOGLE_APPLICATION_CREDENTIALS'] = str(credentials)

        config = write_config(tmp_path, feeds=[FEED]).get_pipeline_config()

        assert config.credential_path == str(credentials)

    def test_local_models(self, tmp_path):
        models = {
            "zh": {"model": "zh.onnx", "tokens": "zh-tokens.txt", "dict_dir": "dict"},
            "en": {"model": "en.onnx", "tokens": "en-tokens.txt", "speaker_id": 3},
        }
        config = write_config(tmp_path, feeds=[FEED], backend="local", local_models=models).get_pipeline_config()

        assert config.local_models["zh"] == LocalModelConfig(model="zh.onnx", tokens="zh-tokens.txt",
                                                             dict_dir="dict")
        assert config.local_models["en"].speaker_id == 3
        assert config.local_models["en"].speed == 0.8

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            ConfigManager(str(tmp_path / "missing.json")).get_pipeline_config()

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{ not json")

        with pytest.raises(ConfigError):
            ConfigManager(str(path)).get_pipeline_config()

    def test_bad_value_type(self, tmp_path):
        with pytest.raises(ConfigError):
            write_config(tmp_path, feeds=[FEED], api_key="k", concurrent_workers="many").get_pipeline_config()

    def test_natural_voice_must_be_boolean(self, tmp_path):
        with pytest.raises(ConfigError, match="use_natural_voice"):
            write_config(tmp_path, feeds=[FEED], api_key="k", use_natural_voice="false").get_pipeline_config()

    def test_natural_voice_enabled(self, tmp_path):
        config = write_config(tmp_path, feeds=[FEED], api_key="k", use_natural_voice=True).get_pipeline_config()
        assert config.use_natural_voice is True

    def test_unknown_model_field(self, tmp_path):
        models = {"zh": {"model": "zh.onnx", "tokens": "t", "voice": "x"}}
        with pytest.raises(ConfigError):
            write_config(tmp_path, feeds=[FEED], local_models=models).get_pipeline_config()


class TestValidation:

    def test_no_feeds(self):
        with pytest.raises(ConfigError, match="feed"):
            PipelineConfig(feeds=[], api_key="k").validate()

    def test_remote_needs_credentials(self):
        with pytest.raises(ConfigError, match="GOOGLE_TTS_API_KEY"):
            PipelineConfig(feeds=[FEED]).validate()

    def test_credential_file_must_exist(self, tmp_path):
        with pytest.raises(ConfigError, match="credential file not found"):
            PipelineConfig(feeds=[FEED], credential_path=str(tmp_path / "nope.json")).validate()

    def test_local_needs_both_models(self):
        config = PipelineConfig(feeds=[FEED], backend="local",
                                local_models={"en": LocalModelConfig(model="en.onnx", tokens="t")})
        with pytest.raises(ConfigError, match="'zh'"):
            config.validate()

    def test_every_problem_reported(self):
        config = PipelineConfig(feeds=[FEED], concurrent_workers=0, max_item_per_feed=0, api_key="k")
        with pytest.raises(ConfigError) as exc_info:
            config.validate()

        message = str(exc_info.value)
        assert "concurrent_workers" in message and "max_item_per_feed" in message


class TestOverride:

    def test_none_values_are_ignored(self, tmp_path):
        manager = write_config(tmp_path, feeds=[FEED], api_key="k", concurrent_workers=6)
        config = manager.override(concurrent_workers=None, log_level="DEBUG")

        assert config.concurrent_workers == 6
        assert config.log_level == "DEBUG"

    def test_override_is_validated(self, tmp_path):
        manager = write_config(tmp_path, feeds=[FEED], api_key="k")
        with pytest.raises(ConfigError):
            manager.override(concurrent_workers=0)

    def test_unknown_key(self, tmp_path):
        manager = write_config(tmp_path, feeds=[FEED], api_key="k")
        with pytest.raises(ConfigError):
            manager.override(colour="blue")
