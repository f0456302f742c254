"""
Ledger events and the hash-chained event log.

Every accepted write emits exactly one event. Events are chained by hash so
that a published log can be checked for gaps or edits.
"""

import logging

logger = logging.getLogger(__name__)
import itertools
import json
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..crypto.hashing import SHA256Hasher


class EventType(Enum):
    """Types of ledger events."""

    ADDRESS_OWNERSHIP_PROOF_SUBMITTED = "address_ownership_proof_submitted"
    ADDRESS_OWNERSHIP_FINALIZED = "address_ownership_finalized"
    SOLVENCY_PROOF_SUBMITTED = "solvency_proof_submitted"


@dataclass
class LedgerEvent:
    """A single entry of the event log."""

    sequence: int
    event_type: EventType
    payload: Dict[str, Any]
    timestamp: float = field(default_factory=time.time)
    previous_event_hash: Optional[str] = None
    event_hash: Optional[str] = None

    def __post_init__(self):
        self.event_hash = self._calculate_hash()

    def _calculate_hash(self) -> str:
        event_data = {
            "sequence": self.sequence,
            "event_type": self.event_type.value,
            "payload": self.payload,
            "timestamp": self.timestamp,
            "previous_event_hash": self.previous_event_hash,
        }
        event_json = json.dumps(event_data, sort_keys=True)
        return str(SHA256Hasher.hash(event_json.encode()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "event_type": self.event_type.value,
            "payload": self.payload,
            "timestamp": self.timestamp,
            "event_hash": self.event_hash,
            "previous_event_hash": self.previous_event_hash,
        }


EventListener = Callable[[LedgerEvent], None]


class EventLog:
    """Append-only, hash-chained log of ledger events with subscribers."""

    def __init__(self):
        self.events: List[LedgerEvent] = []
        self._listeners: Dict[Optional[EventType], List[EventListener]] = {}
        self._sequence = itertools.count()
        self._lock = threading.RLock()

    def subscribe(self, listener: EventListener, event_type: Optional[EventType] = None) -> None:
        """Register ``listener`` for one event type, or for all when ``event_type`` is None."""
        with self._lock:
            self._listeners.setdefault(event_type, []).append(listener)

    def unsubscribe(self, listener: EventListener, event_type: Optional[EventType] = None) -> bool:
        with self._lock:
            listeners = self._listeners.get(event_type, [])
            if listener in listeners:
                listeners.remove(listener)
                return True
            return False

    def emit(self, event_type: EventType, payload: Dict[str, Any]) -> LedgerEvent:
        """Append an event and notify its listeners."""
        with self._lock:
            previous = self.events[-1].event_hash if self.events else None
            event = LedgerEvent(
                sequence=next(self._sequence),
                event_type=event_type,
                payload=payload,
                previous_event_hash=previous,
            )
            self.events.append(event)
            listeners = list(self._listeners.get(event_type, [])) + list(
                self._listeners.get(None, [])
            )

        # The write is already committed; a failing listener cannot undo it.
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Error in event listener for {event_type.value}: {e}")

        return event

    def get_events(self, event_type: Optional[EventType] = None) -> List[LedgerEvent]:
        with self._lock:
            if event_type is None:
                return list(self.events)
            return [event for event in self.events if event.event_type == event_type]

    def latest(self) -> Optional[LedgerEvent]:
        with self._lock:
            return self.events[-1] if self.events else None

    def verify_integrity(self) -> bool:
        """Check every event hash and every back-link."""
        with self._lock:
            for i, event in enumerate(self.events):
                if event.event_hash != event._calculate_hash():
                    return False
                expected_previous = self.events[i - 1].event_hash if i > 0 else None
                if event.previous_event_hash != expected_previous:
                    return False
            return True

    def export(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [event.to_dict() for event in self.events]

    def __len__(self) -> int:
        with self._lock:
            return len(self.events)
