"""Common interface for speech synthesis backends."""

from abc import ABC, abstractmethod

from ...pipeline.models import SynthesisRequest


class SynthesisBackend(ABC):
    """
    Turns one SynthesisRequest into a complete audio file's bytes.

    Implementations must be safe to call from several worker threads at once
    and must raise SynthesisError (or a subclass) when an item cannot be
    synthesized.
    """

    #: File extension for the produced audio, without the dot.
    extension: str = ""

    #: Whether the output format carries an embedded title tag.
    embeds_title_tag: bool = False

    @abstractmethod
    def synthesize(self, request: SynthesisRequest) -> bytes:
        """Return the full audio content for the request's item."""

    def close(self) -> None:
        """Release network sessions or model handles."""
        pass
