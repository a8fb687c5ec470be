"""Configuration loading for the RSS-to-Speech pipeline."""

from .config_manager import ConfigManager, LocalModelConfig, PipelineConfig

__all__ = ['ConfigManager', 'LocalModelConfig', 'PipelineConfig']
