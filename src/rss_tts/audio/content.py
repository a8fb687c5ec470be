"""
Text preparation for speech synthesis.
Turns a feed item into narration text, a stable file identifier, and
request-sized chunks for the remote backend.
"""

import hashlib
import re
from typing import List

from bs4 import BeautifulSoup

from ..podcast.feed_parser import FeedItem

IDENTIFIER_LENGTH = 50

# Google Cloud TTS rejects input above 5000 bytes; leave headroom for JSON escaping.
MAX_CHUNK_BYTES = 4800

BLOCK_TAGS = ['p', 'div', 'li', 'ul', 'ol', 'blockquote', 'pre', 'table', 'tr',
              'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'section', 'article', 'figure']

# ASCII terminators need trailing whitespace so "3.14" survives; CJK ones do not.
SENTENCE_SPLIT_RE = re.compile(r'(?<=[.!?])\s+|(?<=[。！？；])')
PARAGRAPH_SPLIT_RE = re.compile(r'\n\s*\n')


def strip_html_tags(html: str) -> str:
    """Convert article HTML to plain text, keeping paragraph breaks"""
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for tag in soup(['script', 'style', 'noscript']):
        tag.decompose()
    for br in soup.find_all('br'):
        br.replace_with('\n')
    for tag in soup.find_all(BLOCK_TAGS):
        tag.insert_before('\n\n')
        tag.insert_after('\n\n')

    text = soup.get_text()
    lines = [' '.join(line.split()) for line in text.splitlines()]
    text = '\n'.join(lines)
    return re.sub(r'\n{3,}', '\n\n', text).strip()


def build_speech_text(item: FeedItem) -> str:
    """Title, a paragraph break, then the article content (or description)"""
    text = item.title + "\n\n"

    if item.content:
        text += strip_html_tags(item.content)
    elif item.description:
        text += strip_html_tags(item.description)

    return text.strip()


def item_identifier(title: str) -> str:
    """Filesystem-safe identifier for an item, derived from its title"""
    return hashlib.sha256(title.encode('utf-8')).hexdigest()[:IDENTIFIER_LENGTH]


def legacy_filename(title: str) -> str:
    """Filename used by earlier releases, before identifiers were hashed"""
    return title.replace('/', '\\/') + '.mp3'


def _byte_len(text: str) -> int:
    return len(text.encode('utf-8'))


def _hard_split(text: str, max_bytes: int) -> List[str]:
    parts = []
    current = ""
    current_bytes = 0
    for char in text:
        size = _byte_len(char)
        if current and current_bytes + size > max_bytes:
            parts.append(current)
            current, current_bytes = "", 0
        current += char
        current_bytes += size
    if current:
        parts.append(current)
    return parts


def _split_oversized(sentence: str, max_bytes: int) -> List[str]:
    """Break a sentence that is too large on its own at word boundaries"""
    parts = []
    current = ""
    for word in sentence.split():
        if _byte_len(word) > max_bytes:
            if current:
                parts.append(current)
                current = ""
            parts.extend(_hard_split(word, max_bytes))
            continue

        candidate = f"{current} {word}" if current else word
        if _byte_len(candidate) > max_bytes:
            parts.append(current)
            current = word
        else:
            current = candidate

    if current:
        parts.append(current)
    return parts


def chunk_text(text: str, max_bytes: int = MAX_CHUNK_BYTES) -> List[str]:
    """
    Split text into chunks of at most max_bytes UTF-8 bytes.

    Chunks are packed greedily from whole sentences. Paragraph breaks are kept
    inside a chunk; sentences that do not fit anywhere are split on whitespace
    and, failing that, on character boundaries.
    """
    if max_bytes < 4:
        raise ValueError("max_bytes must allow at least one UTF-8 character")

    chunks = []
    current = ""

    for paragraph in PARAGRAPH_SPLIT_RE.split(text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue

        separator = "\n\n"
        for sentence in SENTENCE_SPLIT_RE.split(paragraph):
            sentence = ' '.join(sentence.split())
            if not sentence:
                continue

            if _byte_len(sentence) <= max_bytes:
                pieces = [sentence]
            else:
                pieces = _split_oversized(sentence, max_bytes)

            for piece in pieces:
                candidate = f"{current}{separator}{piece}" if current else piece
                if _byte_len(candidate) > max_bytes:
                    chunks.append(current)
                    current = piece
                else:
                    current = candidate
                separator = " "

    if current:
        chunks.append(current)
    return chunks
