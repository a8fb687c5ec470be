"""
Audio module for the RSS-to-Speech pipeline.
Handles narration text, the on-disk dedup check and output finalization.
"""

from .content import build_speech_text, chunk_text, item_identifier, strip_html_tags
from .dedup import DedupGate
from .finalizer import OutputFinalizer

__all__ = [
    'build_speech_text', 'chunk_text', 'item_identifier', 'strip_html_tags',
    'DedupGate',
    'OutputFinalizer',
]
