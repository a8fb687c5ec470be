"""
Google Cloud Text-to-Speech backend.
Sends each text chunk to the v1 text:synthesize REST endpoint and joins the MP3 parts.
"""

import base64
import binascii
import threading
from typing import Any, Dict, Optional

import requests

from .base import SynthesisBackend
from ..content import MAX_CHUNK_BYTES, build_speech_text, chunk_text
from ...pipeline.models import SynthesisRequest
from ...utils.error_handling import (
    BackendInitError,
    SynthesisError,
    TransientSynthesisError,
    call_with_retry,
)
from ...utils.logging_config import get_logger

logger = get_logger(__name__)

SYNTHESIZE_URL = "https://texttospeech.googleapis.com/v1/text:synthesize"
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
SPEECH_SYNTHESIZE_RETRY_CNT = 5
RETRY_DELAY_SECONDS = 1.0


def voice_name(language_code: str, use_natural_voice: bool) -> Optional[str]:
    """WaveNet voice for natural speech; None lets the API pick its standard voice"""
    if use_natural_voice:
        return f"{language_code}-Wavenet-A"
    return None


def create_authorized_session(credential_path: str = None, api_key: str = None) -> requests.Session:
    """
    Build an HTTP session authorised for the Text-to-Speech API.

    A service-account file takes precedence over an API key.
    """
    if credential_path:
        try:
            from google.auth.transport.requests import AuthorizedSession
            from google.oauth2 import service_account

            credentials = service_account.Credentials.from_service_account_file(
                credential_path, scopes=[CLOUD_PLATFORM_SCOPE]
            )
        except (OSError, ValueError) as e:
            raise BackendInitError(f"Unable to load service account credentials from {credential_path}: {e}") from e
        logger.info(f"Google TTS client initialised with service account {credentials.service_account_email}")
        return AuthorizedSession(credentials)

    if api_key:
        session = requests.Session()
        session.headers.update({'X-Goog-Api-Key': api_key})
        logger.info("Google TTS client initialised with API key")
        return session

    raise BackendInitError("No Google credentials configured (credential_path or GOOGLE_TTS_API_KEY)")


class GoogleTTSBackend(SynthesisBackend):
    """
    Remote synthesis through Google Cloud TTS.

    Each chunk is attempted up to max_attempts times with a fixed delay in
    between; an empty audioContent counts as a failure. If any chunk runs out
    of attempts the whole item fails and no audio is returned.
    """

    extension = "mp3"
    embeds_title_tag = True

    def __init__(self, session: requests.Session,
                 cancel_event: threading.Event = None,
                 max_attempts: int = SPEECH_SYNTHESIZE_RETRY_CNT,
                 retry_delay: float = RETRY_DELAY_SECONDS,
                 max_chunk_bytes: int = MAX_CHUNK_BYTES,
                 timeout: float = 60.0,
                 endpoint: str = SYNTHESIZE_URL):
        self.session = session
        self.cancel_event = cancel_event or threading.Event()
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.max_chunk_bytes = max_chunk_bytes
        self.timeout = timeout
        self.endpoint = endpoint

    @classmethod
    def from_config(cls, config, cancel_event: threading.Event = None) -> 'GoogleTTSBackend':
        session = create_authorized_session(config.credential_path, config.api_key)
        return cls(session, cancel_event=cancel_event)

    def build_payload(self, text: str, request: SynthesisRequest) -> Dict[str, Any]:
        voice = {"languageCode": request.language_code}
        name = voice_name(request.language_code, request.use_natural_voice)
        if name:
            voice["name"] = name

        return {
            "input": {"text": text},
            "voice": voice,
            "audioConfig": {
                "audioEncoding": "MP3",
                "speakingRate": request.speech_speed,
            },
        }

    def _synthesize_chunk(self, payload: Dict[str, Any]) -> bytes:
        """One API call; every failure mode is reported as transient"""
        try:
            response = self.session.post(self.endpoint, json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            raise TransientSynthesisError(f"Google TTS request failed: {e}") from e
        except ValueError as e:
            raise TransientSynthesisError(f"Google TTS returned invalid JSON: {e}") from e

        content = body.get("audioContent") if isinstance(body, dict) else None
        if not content:
            raise TransientSynthesisError("Google TTS returned empty audio content")

        try:
            return base64.b64decode(content)
        except (binascii.Error, ValueError) as e:
            raise TransientSynthesisError(f"Google TTS returned undecodable audio: {e}") from e

    def synthesize(self, request: SynthesisRequest) -> bytes:
        title = request.item.title
        chunks = chunk_text(build_speech_text(request.item), self.max_chunk_bytes)
        if not chunks:
            raise SynthesisError(f"No text to synthesize for '{title}'")

        logger.debug(f"Synthesizing '{title}' in {len(chunks)} chunk(s), language {request.language_code}")

        audio_content = bytearray()
        for index, chunk in enumerate(chunks, 1):
            payload = self.build_payload(chunk, request)
            try:
                audio_chunk = call_with_retry(
                    lambda: self._synthesize_chunk(payload),
                    max_attempts=self.max_attempts,
                    delay=self.retry_delay,
                    retry_on=(TransientSynthesisError,),
                    cancel_event=self.cancel_event,
                    description=f"speech synthesis for '{title}' chunk {index}/{len(chunks)}",
                )
            except TransientSynthesisError as e:
                raise SynthesisError(
                    f"Speech synthesis failed for '{title}' after {self.max_attempts} attempts: {e}"
                ) from e
            audio_content.extend(audio_chunk)

        return bytes(audio_content)

    def close(self):
        self.session.close()
