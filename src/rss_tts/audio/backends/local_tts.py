"""
Offline synthesis with sherpa-onnx VITS models.
Two models are loaded (Mandarin and English); each item is routed by the script of its title.
"""

import io
import threading
from dataclasses import dataclass, field
from typing import Any, Dict

import soundfile as sf

from .base import SynthesisBackend
from ..content import build_speech_text
from ...config.config_manager import LocalModelConfig
from ...pipeline.models import SynthesisRequest
from ...utils.error_handling import BackendInitError, SynthesisError
from ...utils.logging_config import get_logger

logger = get_logger(__name__)

CHINESE_MODEL = "zh"
DEFAULT_MODEL = "en"

# CJK Unified Ideographs, Extension A, Extension B and Compatibility Ideographs
CHINESE_UNICODE_RANGES = (
    (0x4E00, 0x9FFF),
    (0x3400, 0x4DBF),
    (0x20000, 0x2A6DF),
    (0xF900, 0xFAFF),
)


def is_chinese_char(char: str) -> bool:
    code = ord(char)
    return any(low <= code <= high for low, high in CHINESE_UNICODE_RANGES)


def select_model_key(title: str) -> str:
    """Mandarin model if any title character is a CJK ideograph, else the default model"""
    for char in title:
        if is_chinese_char(char):
            return CHINESE_MODEL
    return DEFAULT_MODEL


@dataclass
class LocalModel:
    """A loaded model plus the fixed parameters it is called with"""
    tts: Any
    speaker_id: int = 1
    speed: float = 0.8
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


def load_offline_model(model_config: LocalModelConfig) -> LocalModel:
    """Load a sherpa-onnx VITS model from the files named in model_config"""
    import sherpa_onnx

    tts_config = sherpa_onnx.OfflineTtsConfig(
        model=sherpa_onnx.OfflineTtsModelConfig(
            vits=sherpa_onnx.OfflineTtsVitsModelConfig(
                model=model_config.model,
                lexicon=model_config.lexicon,
                tokens=model_config.tokens,
                data_dir=model_config.data_dir,
                dict_dir=model_config.dict_dir,
            ),
            provider=model_config.provider,
            num_threads=model_config.num_threads,
        ),
        max_num_sentences=1,
    )
    if not tts_config.validate():
        raise BackendInitError(f"Invalid sherpa-onnx model configuration for {model_config.model}")

    logger.info(f"Loaded offline TTS model {model_config.model}")
    return LocalModel(
        tts=sherpa_onnx.OfflineTts(tts_config),
        speaker_id=model_config.speaker_id,
        speed=model_config.speed,
    )


def encode_wav(samples, sample_rate: int) -> bytes:
    buffer = io.BytesIO()
    sf.write(buffer, samples, samplerate=sample_rate, format='WAV', subtype='PCM_16')
    return buffer.getvalue()


class SherpaOnnxBackend(SynthesisBackend):
    """
    In-process synthesis: one generate() call per item, no chunking and no retry.

    A failed generation raises SynthesisError so the worker pool treats it like
    any other failed item.
    """

    extension = "wav"
    embeds_title_tag = False

    def __init__(self, models: Dict[str, LocalModel]):
        missing = {CHINESE_MODEL, DEFAULT_MODEL} - set(models)
        if missing:
            raise BackendInitError(f"Missing offline models: {', '.join(sorted(missing))}")
        self.models = models

    @classmethod
    def from_config(cls, config) -> 'SherpaOnnxBackend':
        models = {}
        for key in (CHINESE_MODEL, DEFAULT_MODEL):
            try:
                models[key] = load_offline_model(config.local_models[key])
            except BackendInitError:
                raise
            except Exception as e:
                raise BackendInitError(f"Failed to load offline model '{key}': {e}") from e
        return cls(models)

    def synthesize(self, request: SynthesisRequest) -> bytes:
        item = request.item
        key = select_model_key(item.title)
        model = self.models[key]
        text = build_speech_text(item)

        logger.debug(f"Generating '{item.title}' with offline model '{key}'")

        # generate() is not assumed to be re-entrant; serialise calls per model
        with model.lock:
            try:
                audio = model.tts.generate(text, sid=model.speaker_id, speed=model.speed)
            except Exception as e:
                raise SynthesisError(f"Offline generation failed for '{item.title}': {e}") from e

        samples = getattr(audio, 'samples', None)
        if samples is None or len(samples) == 0:
            raise SynthesisError(f"Offline generation produced no audio for '{item.title}'")

        return encode_wav(samples, audio.sample_rate)
