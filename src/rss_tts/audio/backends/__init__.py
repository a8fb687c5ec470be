"""
Speech synthesis backends for the RSS-to-Speech pipeline.
The backend is chosen once per run; workers only see the SynthesisBackend interface.
"""

import threading

from .base import SynthesisBackend
from ...utils.error_handling import ConfigError


def create_backend(config, cancel_event: threading.Event = None) -> SynthesisBackend:
    """Build the backend named by config.backend ('remote' or 'local')"""
    if config.backend == "remote":
        from .google_tts import GoogleTTSBackend
        return GoogleTTSBackend.from_config(config, cancel_event=cancel_event)

    if config.backend == "local":
        from .local_tts import SherpaOnnxBackend
        return SherpaOnnxBackend.from_config(config)

    raise ConfigError(f"Unknown synthesis backend: {config.backend}")


__all__ = ['SynthesisBackend', 'create_backend']
