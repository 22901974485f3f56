"""JSON persistence of tuning sessions and piano profiles."""

import json
import os
import shutil
from pathlib import Path
from typing import List, Optional, Union

from ..logger import get_logger
from ..tuning.profile import PianoProfile
from ..tuning.session import Session

# Get logger for this module
logger = get_logger(__name__)

DEFAULT_DATA_DIR = os.path.join(os.path.expanduser("~"), ".local", "share", "piano_coach")


def _file_name(record_id: str) -> str:
    return record_id.replace(":", "-") + ".json"


class SessionStore:
    """Stores each session and profile as a self-describing JSON file.

    Layout::

        <base_dir>/sessions/<id>.json
        <base_dir>/profiles/<id>.json
    """

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or DEFAULT_DATA_DIR)
        self.sessions_dir = self.base_dir / "sessions"
        self.profiles_dir = self.base_dir / "profiles"

    def save(self, record: Union[Session, PianoProfile]) -> Path:
        """Write a session or profile, replacing any previous version.

        Raises:
            OSError: If the file cannot be written
        """
        if isinstance(record, Session):
            directory = self.sessions_dir
        elif isinstance(record, PianoProfile):
            directory = self.profiles_dir
        else:
            raise TypeError(f"Cannot store {type(record).__name__}")

        directory.mkdir(parents=True, exist_ok=True)
        path = directory / _file_name(record.id)
        tmp_path = path.with_suffix(".tmp")
        with open(tmp_path, "w") as f:
            json.dump(record.to_dict(), f, indent=2)
        os.replace(tmp_path, path)
        logger.debug(f"Saved {type(record).__name__} {record.id} to {path}")
        return path

    def load_session(self, session_id: str) -> Session:
        """Load a session by id.

        Raises:
            OSError: If the file does not exist or cannot be read
            ValueError: If the file is not a valid session
        """
        return self._load(self.sessions_dir / _file_name(session_id), Session)

    def load_profile(self, profile_id: str) -> PianoProfile:
        return self._load(self.profiles_dir / _file_name(profile_id), PianoProfile)

    @staticmethod
    def _load(path: Path, kind):
        with open(path, "r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Malformed {kind.__name__} file {path}: expected a JSON object")
        try:
            return kind.from_dict(data)
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Malformed {kind.__name__} file {path}: {e}") from e

    def _load_all(self, directory: Path, kind) -> list:
        if not directory.exists():
            return []
        records = []
        for path in sorted(directory.glob("*.json")):
            try:
                records.append(self._load(path, kind))
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping unreadable file {path}: {e}")
        return records

    def list_sessions(self) -> List[Session]:
        """All sessions, most recently created first."""
        sessions = self._load_all(self.sessions_dir, Session)
        sessions.sort(key=lambda s: s.created_at, reverse=True)
        return sessions

    def list_profiles(self) -> List[PianoProfile]:
        """All profiles, most recently created first."""
        profiles = self._load_all(self.profiles_dir, PianoProfile)
        profiles.sort(key=lambda p: p.created_at, reverse=True)
        return profiles

    def load_most_recent_incomplete(self) -> Optional[Session]:
        """The incomplete session updated most recently, if any."""
        incomplete = [s for s in self._load_all(self.sessions_dir, Session) if not s.is_complete()]
        if not incomplete:
            return None
        return max(incomplete, key=lambda s: s.updated_at)

    def delete_session(self, session: Session) -> None:
        path = self.sessions_dir / _file_name(session.id)
        if path.exists():
            path.unlink()

    def reset(self) -> int:
        """Delete all saved sessions. Returns how many were removed."""
        if not self.sessions_dir.exists():
            return 0
        count = len(list(self.sessions_dir.glob("*.json")))
        shutil.rmtree(self.sessions_dir)
        logger.info(f"Removed {count} saved session(s)")
        return count
