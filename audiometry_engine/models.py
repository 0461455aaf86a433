"""Data model for a pure-tone test session."""
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Optional, Tuple

from .exceptions import SessionClosedError, IncompleteSessionError
from .utils.defaults import STANDARD_FREQUENCIES, ASYMMETRY_THRESHOLD_DB


class Ear(Enum):
    RIGHT = 'right'
    LEFT = 'left'

    @property
    def other(self) -> 'Ear':
        return Ear.LEFT if self is Ear.RIGHT else Ear.RIGHT


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ResponseEvent:
    """One tone presentation and the response it received."""
    frequency: int
    ear: Ear
    hearing_level: int
    heard: bool
    timestamp: datetime
    timed_out: bool = False
    phase: str = ''

    def to_dict(self):
        return {
            'frequency': self.frequency,
            'ear': self.ear.value,
            'hearing_level': self.hearing_level,
            'heard': self.heard,
            'timestamp': self.timestamp.isoformat(),
            'timed_out': self.timed_out,
            'phase': self.phase,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            frequency=int(data['frequency']),
            ear=Ear(data['ear']),
            hearing_level=int(data['hearing_level']),
            heard=bool(data['heard']),
            timestamp=datetime.fromisoformat(data['timestamp']),
            timed_out=bool(data.get('timed_out', False)),
            phase=data.get('phase', ''),
        )


@dataclass(frozen=True)
class Threshold:
    """Converged hearing level for one (ear, frequency) pair.

    ``no_response`` marks a tone never heard at the maximum level; the level is
    then reported as the ladder maximum. ``capped`` marks a search finalized at
    the presentation bound.
    """
    ear: Ear
    frequency: int
    level: int
    no_response: bool = False
    capped: bool = False
    presentations: int = 0

    def to_dict(self):
        data = asdict(self)
        data['ear'] = self.ear.value
        return data

    @classmethod
    def from_dict(cls, data):
        data = dict(data)
        data['ear'] = Ear(data['ear'])
        return cls(**data)


PairKey = Tuple[Ear, int]


class TestSession:
    """
    Response log and thresholds of one full test run.

    Events are append-only. Thresholds are recorded as pairs converge and the
    session is sealed by ``finalize``; after that every mutation raises
    ``SessionClosedError`` and the session can be shared read-only.
    """

    __test__ = False  # keep pytest from collecting this class

    def __init__(self, frequencies: Iterable[int] = STANDARD_FREQUENCIES,
                 ears: Iterable[Ear] = (Ear.RIGHT, Ear.LEFT),
                 session_id: Optional[str] = None,
                 started_at: Optional[datetime] = None):
        self.session_id = session_id or uuid.uuid4().hex
        self.started_at = started_at or utcnow()
        self.frequencies = tuple(int(f) for f in frequencies)
        self.ears = tuple(ears)
        self.completed_at: Optional[datetime] = None
        self._events: List[ResponseEvent] = []
        self._thresholds: Dict[PairKey, Threshold] = {}

    @property
    def pairs(self) -> Tuple[PairKey, ...]:
        return tuple((ear, freq) for ear in self.ears for freq in self.frequencies)

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None

    @property
    def events(self) -> Tuple[ResponseEvent, ...]:
        return tuple(self._events)

    @property
    def thresholds(self):
        return MappingProxyType(self._thresholds)

    def _check_open(self):
        if self.is_complete:
            raise SessionClosedError(f"Session {self.session_id} is already finalized")

    def append_event(self, event: ResponseEvent) -> None:
        self._check_open()
        self._events.append(event)

    def record_threshold(self, threshold: Threshold) -> None:
        self._check_open()
        key = (threshold.ear, threshold.frequency)
        if key not in self.pairs:
            raise ValueError(f"{threshold.ear.value} ear at {threshold.frequency} Hz is not part of this session")
        if key in self._thresholds:
            raise ValueError(f"Threshold already recorded for {threshold.ear.value} ear at {threshold.frequency} Hz")
        self._thresholds[key] = threshold

    def finalize(self, completed_at: Optional[datetime] = None) -> None:
        """Seal the session once every pair has exactly one threshold."""
        self._check_open()
        missing = [key for key in self.pairs if key not in self._thresholds]
        if missing:
            labels = ", ".join(f"{ear.value}@{freq}" for ear, freq in missing)
            raise IncompleteSessionError(f"Missing thresholds for: {labels}")
        self.completed_at = completed_at or utcnow()

    # Derived views

    def thresholds_for(self, ear: Ear) -> Dict[int, int]:
        """Threshold levels of one ear keyed by frequency, in test order."""
        return {freq: self._thresholds[(ear, freq)].level
                for freq in self.frequencies if (ear, freq) in self._thresholds}

    def events_for(self, ear: Ear, frequency: int) -> Tuple[ResponseEvent, ...]:
        return tuple(e for e in self._events if e.ear is ear and e.frequency == frequency)

    def average_level(self, ear: Ear) -> float:
        levels = list(self.thresholds_for(ear).values())
        if not levels:
            return 0.0
        return sum(levels) / len(levels)

    @property
    def has_asymmetric_hearing(self) -> bool:
        return abs(self.average_level(Ear.RIGHT) - self.average_level(Ear.LEFT)) > ASYMMETRY_THRESHOLD_DB

    # Persistence

    def to_record(self) -> dict:
        return {
            'session_id': self.session_id,
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'frequencies': list(self.frequencies),
            'ears': [ear.value for ear in self.ears],
            'events': [e.to_dict() for e in self._events],
            'thresholds': [t.to_dict() for t in self._thresholds.values()],
        }

    @classmethod
    def from_record(cls, record: dict) -> 'TestSession':
        session = cls(
            frequencies=record['frequencies'],
            ears=[Ear(e) for e in record['ears']],
            session_id=record['session_id'],
            started_at=datetime.fromisoformat(record['started_at']),
        )
        for event in record.get('events', []):
            session.append_event(ResponseEvent.from_dict(event))
        for threshold in record.get('thresholds', []):
            session.record_threshold(Threshold.from_dict(threshold))
        if record.get('completed_at'):
            session.finalize(datetime.fromisoformat(record['completed_at']))
        return session

    def __repr__(self):
        state = 'complete' if self.is_complete else 'open'
        return (f"TestSession(id={self.session_id!r}, {state}, "
                f"events={len(self._events)}, thresholds={len(self._thresholds)}/{len(self.pairs)})")
