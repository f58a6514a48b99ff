"""
The ExecutionReport records what happened to every identity of a plan
"""

# Standard
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional
import threading

# First Party
import alog

# Local
from .identity import Identity

log = alog.use_channel("REPRT")


class Outcome(Enum):
    """Terminal outcome of the apply of one identity"""

    CREATED = "Created"
    PATCHED = "Patched"
    DELETED = "Deleted"
    NOOP = "NoOp"
    FAILED = "Failed"
    SKIPPED_DEPENDENCY = "SkippedDependency"
    CONFLICT = "Conflict"
    CANCELLED = "Cancelled"

    @property
    def succeeded(self) -> bool:
        return self in (Outcome.CREATED, Outcome.PATCHED, Outcome.DELETED, Outcome.NOOP)


class Readiness(Enum):
    """Result of waiting for one identity"""

    READY = "Ready"
    TIMED_OUT = "TimedOut"
    CANCELLED = "Cancelled"
    ERROR = "Error"


@dataclass(frozen=True)
class ReportEntry:
    """What happened to one identity"""

    identity: Identity
    outcome: Outcome
    reason: str = ""
    attempts: int = 0
    base_changed: bool = False
    readiness: Optional[Readiness] = None
    readiness_reason: str = ""

    def to_dict(self) -> dict:
        """Plain representation for the emitters"""
        entry = {
            "apiVersion": self.identity.api_version,
            "kind": self.identity.kind,
            "namespace": self.identity.namespace,
            "name": self.identity.name,
            "outcome": self.outcome.value,
            "attempts": self.attempts,
        }
        if self.reason:
            entry["reason"] = self.reason
        if self.base_changed:
            entry["baseChanged"] = True
        if self.readiness is not None:
            entry["readiness"] = self.readiness.value
            if self.readiness_reason:
                entry["readinessReason"] = self.readiness_reason
        return entry


class ExecutionReport:
    """Thread safe collection of one ReportEntry per identity. Entries are
    listed in plan order, followed by identities the plan did not name in the
    order they were recorded.
    """

    def __init__(self, identities: Iterable[Identity] = ()):
        """
        Args:
            identities:  Iterable[Identity]
                The identities of the plan, in plan order
        """
        self._order = {obj_id: i for i, obj_id in enumerate(identities)}
        self._entries: Dict[Identity, ReportEntry] = {}
        self._lock = threading.Lock()

    ## Recording ###############################################################

    def record(
        self,
        identity: Identity,
        outcome: Outcome,
        reason: str = "",
        attempts: int = 0,
        base_changed: bool = False,
    ) -> ReportEntry:
        """Record the terminal outcome of an identity, replacing any previous
        outcome but keeping readiness
        """
        with self._lock:
            previous = self._entries.get(identity)
            entry = ReportEntry(
                identity=identity,
                outcome=outcome,
                reason=reason,
                attempts=attempts,
                base_changed=base_changed,
                readiness=previous.readiness if previous else None,
                readiness_reason=previous.readiness_reason if previous else "",
            )
            self._entries[identity] = entry
        if outcome.succeeded:
            log.debug2("[%s] %s", identity, outcome.value)
        else:
            log.debug("[%s] %s: %s", identity, outcome.value, reason)
        return entry

    def record_readiness(
        self, identity: Identity, readiness: Readiness, reason: str = ""
    ) -> ReportEntry:
        """Attach the result of waiting to an already recorded identity"""
        with self._lock:
            entry = replace(
                self._entries[identity], readiness=readiness, readiness_reason=reason
            )
            self._entries[identity] = entry
        return entry

    ## Accessors ###############################################################

    def get(self, identity: Identity) -> Optional[ReportEntry]:
        with self._lock:
            return self._entries.get(identity)

    def outcome(self, identity: Identity) -> Optional[Outcome]:
        entry = self.get(identity)
        return entry.outcome if entry else None

    @property
    def entries(self) -> List[ReportEntry]:
        with self._lock:
            entries = list(self._entries.values())
        unordered = len(self._order)
        return sorted(
            entries,
            key=lambda entry: self._order.get(entry.identity, unordered),
        )

    def by_outcome(self, outcome: Outcome) -> List[ReportEntry]:
        return [entry for entry in self.entries if entry.outcome == outcome]

    def failed(self) -> bool:
        """True if any identity ended FAILED or CONFLICT"""
        return any(
            entry.outcome in (Outcome.FAILED, Outcome.CONFLICT)
            for entry in self.entries
        )

    def all_ready(self) -> bool:
        """True if every waited-for identity is READY"""
        return all(
            entry.readiness == Readiness.READY
            for entry in self.entries
            if entry.readiness is not None
        )

    def summary(self) -> Dict[str, int]:
        """Count of entries per outcome"""
        counts = {}
        for entry in self.entries:
            counts[entry.outcome.value] = counts.get(entry.outcome.value, 0) + 1
        return counts

    def to_list(self) -> List[dict]:
        return [entry.to_dict() for entry in self.entries]

    def __iter__(self) -> Iterator[ReportEntry]:
        return iter(self.entries)

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def __str__(self):
        return ", ".join(
            f"{entry.outcome.value}({entry.identity})" for entry in self.entries
        )
