"""
Configuration Manager for the RSS-to-Speech pipeline.
Loads the JSON run configuration and environment overrides into typed settings.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from ..utils.error_handling import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/config.json"
BACKENDS = ("remote", "local")


@dataclass
class LocalModelConfig:
    """File locations and generation settings for one sherpa-onnx VITS model"""
    model: str
    tokens: str
    lexicon: str = ""
    data_dir: str = ""
    dict_dir: str = ""
    speaker_id: int = 1
    speed: float = 0.8
    num_threads: int = 2
    provider: str = "cpu"


@dataclass
class PipelineConfig:
    """Settings for one pipeline run"""
    feeds: List[str]
    concurrent_workers: int = 4
    max_item_per_feed: int = 10
    item_since: float = 24.0
    speech_speed: float = 1.0
    use_natural_voice: bool = False
    output_root: str = "output"
    credential_path: Optional[str] = None
    api_key: Optional[str] = None
    backend: str = "remote"
    default_language: str = "en-US"
    local_models: Dict[str, LocalModelConfig] = field(default_factory=dict)
    log_level: str = "INFO"
    log_dir: Optional[str] = "data/logs"

    @property
    def queue_capacity(self) -> int:
        """Bounded queue size: every feed may contribute up to its item cap"""
        return self.max_item_per_feed * len(self.feeds)

    def validate(self):
        """Raise ConfigError describing every problem found"""
        errors = []

        if not self.feeds:
            errors.append("at least one feed URL is required")
        if self.concurrent_workers < 1:
            errors.append("concurrent_workers must be at least 1")
        if self.max_item_per_feed < 1:
            errors.append("max_item_per_feed must be at least 1")
        if self.item_since <= 0:
            errors.append("item_since must be a positive number of hours")
        if self.speech_speed <= 0:
            errors.append("speech_speed must be positive")
        if not isinstance(self.use_natural_voice, bool):
            errors.append(f"use_natural_voice must be true or false, got {self.use_natural_voice!r}")
        if self.backend not in BACKENDS:
            errors.append(f"backend must be one of {', '.join(BACKENDS)}, got '{self.backend}'")

        if self.backend == "remote" and not (self.credential_path or self.api_key):
            errors.append("remote backend needs credential_path (or GOOGLE_APPLICATION_CREDENTIALS) "
                          "or GOOGLE_TTS_API_KEY")
        if self.backend == "remote" and self.credential_path and not Path(self.credential_path).exists():
            errors.append(f"credential file not found: {self.credential_path}")

        if self.backend == "local":
            for lang in ("zh", "en"):
                if lang not in self.local_models:
                    errors.append(f"local backend needs a '{lang}' entry in local_models")

        if errors:
            raise ConfigError("Invalid configuration: " + "; ".join(errors))


class ConfigManager:
    """Manages pipeline configuration from a JSON file plus environment variables"""

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH):
        self.config_path = Path(config_path)
        self._raw_config = None
        self._pipeline_config = None

    def _load_raw_config(self) -> Dict[str, Any]:
        """Load the JSON configuration file"""
        if self._raw_config is None:
            if not self.config_path.exists():
                raise ConfigError(f"Config file not found: {self.config_path}")

            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    self._raw_config = json.load(f)
                logger.info(f"Loaded configuration from {self.config_path}")
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Failed to load config: {e}")
                raise ConfigError(f"Failed to load config {self.config_path}: {e}") from e

            if not isinstance(self._raw_config, dict):
                raise ConfigError(f"Config root must be a JSON object: {self.config_path}")

        return self._raw_config

    def _build_local_models(self, raw: Dict[str, Any]) -> Dict[str, LocalModelConfig]:
        models = {}
        for lang, model_cfg in (raw or {}).items():
            try:
                models[lang] = LocalModelConfig(**model_cfg)
            except TypeError as e:
                raise ConfigError(f"Invalid local model config for '{lang}': {e}") from e
        return models

    def get_pipeline_config(self) -> PipelineConfig:
        """Build, validate and cache the PipelineConfig"""
        if self._pipeline_config is not None:
            return self._pipeline_config

        load_dotenv()
        raw = self._load_raw_config()

        credential_path = raw.get('credential_path') or os.getenv('GOOGLE_APPLICATION_CREDENTIALS')
        if raw.get('credential_path'):
            # google-auth tooling reads the variable as well
            os.environ['GOOGLE_APPLICATION_CREDENTIALS'] = raw['credential_path']

        try:
            config = PipelineConfig(
                feeds=list(raw.get('feeds', [])),
                concurrent_workers=int(raw.get('concurrent_workers', 4)),
                max_item_per_feed=int(raw.get('max_item_per_feed', 10)),
                item_since=float(raw.get('item_since', 24)),
                speech_speed=float(raw.get('speech_speed', 1.0)),
                use_natural_voice=raw.get('use_natural_voice', False),
                output_root=raw.get('output_root', 'output'),
                credential_path=credential_path,
                api_key=os.getenv('GOOGLE_TTS_API_KEY') or raw.get('api_key'),
                backend=raw.get('backend', 'remote'),
                default_language=raw.get('default_language', 'en-US'),
                local_models=self._build_local_models(raw.get('local_models')),
                log_level=raw.get('log_level', 'INFO'),
                log_dir=raw.get('log_dir', 'data/logs'),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value in {self.config_path}: {e}") from e

        config.validate()
        self._pipeline_config = config
        logger.info(f"Pipeline config: {len(config.feeds)} feeds, backend={config.backend}, "
                    f"workers={config.concurrent_workers}, max_item_per_feed={config.max_item_per_feed}, "
                    f"item_since={config.item_since}h")
        return config

    def override(self, **changes) -> PipelineConfig:
        """Apply CLI overrides on top of the file configuration and re-validate"""
        config = self.get_pipeline_config()
        for key, value in changes.items():
            if value is None:
                continue
            if not hasattr(config, key):
                raise ConfigError(f"Unknown configuration key: {key}")
            setattr(config, key, value)
        config.validate()
        return config
