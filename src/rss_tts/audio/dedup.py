"""
Skip check for items that already have audio on disk.

The check is a plain existence test with no locking: two workers handling
items with the same identifier in the same directory can both pass it and both
write, in which case the last write wins. This covers duplicate titles within
one feed and also identical titles from different feeds whose names sanitize
to the same directory and share an update date.

A path that cannot be inspected (for example a legacy filename longer than the
filesystem allows) counts as not present.
"""

from pathlib import Path

from .content import legacy_filename
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


def artifact_path(directory, identifier: str, extension: str) -> Path:
    """Absolute output path for an identifier, e.g. <dir>/<identifier>.mp3"""
    return (Path(directory) / f"{identifier}.{extension.lstrip('.')}").absolute()


def legacy_artifact_path(directory, title: str) -> Path:
    return (Path(directory) / legacy_filename(title)).absolute()


class DedupGate:
    """Decides whether synthesis can be skipped for an item"""

    def __init__(self, extension: str):
        self.extension = extension.lstrip('.')

    def path_for(self, identifier: str, directory) -> Path:
        return artifact_path(directory, identifier, self.extension)

    def should_skip(self, identifier: str, directory, title: str) -> bool:
        """True when the hashed artifact or the legacy title-named file exists"""
        for candidate in (self.path_for(identifier, directory), legacy_artifact_path(directory, title)):
            if _exists(candidate):
                logger.info(f"File exists at path: {candidate}, skip generating")
                return True
        return False


def _exists(path: Path) -> bool:
    try:
        path.stat()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Cannot check {path}, treating it as absent: {e}")
        return False
    return True
