"""PatternMemory: what fixed which error, keyed by error signature.

Thread-safe bounded store shared by every pipeline in a batch.  The
recovery strategy selector consults it before the static strategy table
so that a strategy which resolved a failure once is tried first the next
time the same failure appears.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import threading
import traceback
from collections import OrderedDict
from typing import Any

from artifact_orchestrator.domain.enums import RecoveryApproach
from artifact_orchestrator.domain.values import ErrorPattern

logger = logging.getLogger(__name__)

_MESSAGE_PREFIX = 50


def top_frame(exc: BaseException) -> str:
    """``file:function`` of the frame that raised *exc*, or ``""``."""
    frames = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
    if not frames:
        return ""
    frame = frames[-1]
    return f"{os.path.basename(frame.filename)}:{frame.name}"


def compute_signature(message: str, frame: str = "") -> str:
    """SHA-256 over the truncated message and the raising frame."""
    digest = hashlib.sha256()
    digest.update(message[:_MESSAGE_PREFIX].encode("utf-8"))
    digest.update(b"\x00")
    digest.update(frame.encode("utf-8"))
    return digest.hexdigest()


def error_signature(exc: BaseException) -> str:
    """Stable signature for *exc*: same message prefix and origin, same key."""
    return compute_signature(str(exc), top_frame(exc))


class PatternMemory:
    """Bounded, thread-safe map of error signature -> :class:`ErrorPattern`.

    Parameters
    ----------
    max_entries:
        When exceeded, the least recently written entry is evicted.
    """

    def __init__(self, max_entries: int = 1000) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self.max_entries = max_entries
        self._entries: OrderedDict[str, ErrorPattern] = OrderedDict()
        self._lock = threading.Lock()

    def record(self, signature: str, pattern: ErrorPattern) -> None:
        """Store *pattern* under *signature*; the most recent write wins."""
        with self._lock:
            self._entries.pop(signature, None)
            self._entries[signature] = pattern
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("PatternMemory: evicted %s", evicted[:12])

    def lookup(self, signature: str) -> ErrorPattern | None:
        with self._lock:
            return self._entries.get(signature)

    def successful_strategy(self, signature: str) -> RecoveryApproach | None:
        """Shortcut: the approach that last resolved *signature*, if any."""
        pattern = self.lookup(signature)
        return pattern.successful_strategy if pattern is not None else None

    def signatures(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, signature: str) -> bool:
        with self._lock:
            return signature in self._entries

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    # -- serialization --------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict, oldest entry first."""
        with self._lock:
            return {
                signature: {
                    "operation_type": p.operation_type,
                    "successful_strategy": (
                        p.successful_strategy.value if p.successful_strategy else None
                    ),
                    "failed_strategies": [s.value for s in p.failed_strategies],
                    "prevention_suggestions": list(p.prevention_suggestions),
                    "recorded_at": p.recorded_at,
                }
                for signature, p in self._entries.items()
            }

    @classmethod
    def from_dict(cls, data: dict[str, Any], max_entries: int = 1000) -> PatternMemory:
        memory = cls(max_entries=max_entries)
        for signature, d in data.items():
            successful = d.get("successful_strategy")
            memory.record(
                signature,
                ErrorPattern(
                    signature=signature,
                    operation_type=d.get("operation_type", ""),
                    successful_strategy=RecoveryApproach(successful) if successful else None,
                    failed_strategies=tuple(
                        RecoveryApproach(s) for s in d.get("failed_strategies", ())
                    ),
                    prevention_suggestions=tuple(d.get("prevention_suggestions", ())),
                    recorded_at=d.get("recorded_at", 0.0),
                ),
            )
        return memory

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, json_str: str, max_entries: int = 1000) -> PatternMemory:
        return cls.from_dict(json.loads(json_str), max_entries=max_entries)
