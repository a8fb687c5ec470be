"""
Output Finalizer for synthesized audio.
Writes the audio file, optionally tags it, and stamps it with the article's time.
"""

import os
import tempfile
import time
from pathlib import Path
from typing import Optional

from mutagen import MutagenError
from mutagen.easyid3 import EasyID3
from mutagen.id3 import ID3NoHeaderError

from ..podcast.feed_parser import FeedItem
from ..utils.error_handling import OutputError
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

FILE_MODE = 0o644


def item_file_time(item: FeedItem, now: Optional[float] = None) -> float:
    """POSIX timestamp for the output file: updated, then published, then now"""
    stamp = item.file_time
    if stamp is not None:
        return stamp.timestamp()
    return time.time() if now is None else now


def write_title_tag(path, title: str, album: str = ""):
    """Embed an ID3 title (and album) into an MP3 file"""
    try:
        tags = EasyID3(str(path))
    except ID3NoHeaderError:
        tags = EasyID3()
    tags['title'] = title
    if album:
        tags['album'] = album
    tags.save(str(path))


class OutputFinalizer:
    """Turns synthesized audio bytes into the final on-disk artifact"""

    def finalize(self, audio: bytes, path, item: FeedItem, directory, tag_title: bool = False) -> Path:
        """
        Write audio to path, tag it if requested and set its access/modification time.

        The bytes go to a temporary file in the same directory first, so the final
        path only ever holds a complete file.

        Raises:
            OutputError: If the file cannot be written or stamped
        """
        path = Path(path)
        directory = Path(directory)
        tmp_path = None

        try:
            with tempfile.NamedTemporaryFile(dir=path.parent, prefix='.', suffix=path.suffix + '.part',
                                             delete=False) as tmp:
                tmp_path = Path(tmp.name)
                tmp.write(audio)

            if tag_title:
                try:
                    write_title_tag(tmp_path, item.title, album=directory.name)
                except MutagenError as e:
                    logger.warning(f"Could not write ID3 tag for {path}: {e}")

            os.chmod(tmp_path, FILE_MODE)
            os.replace(tmp_path, path)
            tmp_path = None

            file_time = item_file_time(item)
            os.utime(path, (file_time, file_time))
        except OSError as e:
            raise OutputError(f"Failed to write synthesized file {path}: {e}") from e
        finally:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()

        logger.debug(f"Wrote {len(audio)} bytes to {path}")
        return path
