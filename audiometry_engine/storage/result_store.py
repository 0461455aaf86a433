"""Persistence contract for completed sessions."""
import json
import logging
from pathlib import Path
from typing import List, Protocol

from ..analysis.classification import HearingResult
from ..exceptions import IncompleteSessionError
from ..models import TestSession

logger = logging.getLogger(__name__)


class ResultStore(Protocol):
    def save(self, record: dict) -> bool:
        """Persist one session record; returns whether it was stored."""
        ...


def build_record(session: TestSession, result: HearingResult) -> dict:
    """Plain-dict document of a completed session and its classification."""
    if not session.is_complete:
        raise IncompleteSessionError(f"Session {session.session_id} is not complete")
    record = session.to_record()
    record.update(result.to_dict())
    return record


class JsonResultStore:
    """One JSON document per session under a directory."""

    def __init__(self, directory):
        self.directory = Path(directory)

    def _path(self, session_id):
        return self.directory / f"{session_id}.json"

    def save(self, record: dict) -> bool:
        session_id = record.get('session_id')
        if not session_id:
            logger.error("Refusing to store a record without session_id")
            return False
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(session_id)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(record, f, indent=2)
        logger.info("Saved session %s to %s", session_id, path)
        return True

    def load(self, session_id) -> dict:
        with open(self._path(session_id), 'r', encoding='utf-8') as f:
            return json.load(f)

    def load_all(self) -> List[dict]:
        if not self.directory.is_dir():
            return []
        records = []
        for path in sorted(self.directory.glob('*.json')):
            with open(path, 'r', encoding='utf-8') as f:
                records.append(json.load(f))
        return records
