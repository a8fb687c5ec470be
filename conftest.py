"""
Shared fixtures and fakes for the RSS-to-Speech tests.
Nothing here touches the network: backends and feed parsers are replaced with in-memory fakes.
"""

import base64
import threading
from datetime import datetime, timedelta, timezone

import pytest
import requests

from rss_tts.audio.backends.base import SynthesisBackend
from rss_tts.pipeline.models import SynthesisRequest
from rss_tts.podcast.feed_parser import Feed, FeedItem

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_item(title: str, hours_ago: float = 1.0, updated_hours_ago: float = None, **kwargs) -> FeedItem:
    published = NOW - timedelta(hours=hours_ago) if hours_ago is not None else None
    updated = NOW - timedelta(hours=updated_hours_ago) if updated_hours_ago is not None else None
    kwargs.setdefault('content', f"<p>Body of {title}.</p>")
    return FeedItem(title=title, published=published, updated=updated, **kwargs)


def make_request(item: FeedItem, directory, language_code: str = "en-US") -> SynthesisRequest:
    return SynthesisRequest(item=item, directory=directory, language_code=language_code)


class RecordingBackend(SynthesisBackend):
    """Returns fixed audio per title and records every call"""

    extension = "mp3"
    embeds_title_tag = False

    def __init__(self, fail_titles=()):
        self.calls = []
        self.fail_titles = set(fail_titles)
        self._lock = threading.Lock()

    def synthesize(self, request):
        with self._lock:
            self.calls.append(request.item.title)
        if request.item.title in self.fail_titles:
            from rss_tts.utils.error_handling import SynthesisError
            raise SynthesisError(f"cannot synthesize {request.item.title}")
        return f"audio:{request.item.title}".encode('utf-8')


class BlockingBackend(RecordingBackend):
    """Holds every synthesize() call until release() is called"""

    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self._release = threading.Event()

    def synthesize(self, request):
        self.started.set()
        if not self._release.wait(timeout=10):
            raise RuntimeError("BlockingBackend was never released")
        return super().synthesize(request)

    def release(self):
        self._release.set()


class FakeResponse:
    def __init__(self, audio: bytes = None, status_code: int = 200):
        self.audio = audio
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        if self.audio is None:
            return {}
        return {"audioContent": base64.b64encode(self.audio).decode('ascii')}


class ScriptedSession:
    """
    Stand-in for requests.Session.post().

    Each entry of script is either bytes (successful audio), an exception
    instance to raise, or a FakeResponse.
    """

    def __init__(self, script):
        self.script = list(script)
        self.payloads = []
        self.closed = False

    def post(self, url, json=None, timeout=None):
        self.payloads.append(json)
        step = self.script.pop(0)
        if isinstance(step, BaseException):
            raise step
        if isinstance(step, FakeResponse):
            return step
        return FakeResponse(step)

    def close(self):
        self.closed = True


class FakeFeedParser:
    """Returns prepared Feed objects by URL; exceptions are raised instead"""

    def __init__(self, feeds):
        self.feeds = feeds

    def parse_feed(self, url):
        result = self.feeds[url]
        if isinstance(result, BaseException):
            raise result
        return result

    def close(self):
        pass


@pytest.fixture
def output_dir(tmp_path):
    directory = tmp_path / "output"
    directory.mkdir()
    return directory


@pytest.fixture
def sample_feed():
    return Feed(
        title="Example News",
        url="https://example.com/rss",
        language="en-US",
        updated=NOW,
        items=(make_item("A", hours_ago=1), make_item("B", hours_ago=72)),
    )
