"""File Lifecycle — pure status transition table for uploaded files.

Invariants:
    - next_status is PURE: returns the target status, never touches the store
    - Any (status, event) pair absent from the tables raises InvalidTransitionError
    - URL is set iff status == UPLOADED_TO_STORAGE (check_url_invariant)
    - UPLOADED_TO_STORAGE is reachable only via UPLOADED_BY_CLIENT -> STORAGE_UPLOAD_IN_PROGRESS
    - Recovery transitions only return a file to UPLOADED_BY_CLIENT, never forward

Design Decisions:
    - Transition table as data (dict): the shell builds its conditional UPDATEs from
      source_statuses(event), so the table is the single source of truth for both
      validation and the WHERE clause of every status change
    - Recovery split from the core table: lease expiry and operator requeue are never
      applied automatically by a status change
"""

from dataclasses import dataclass
from types import MappingProxyType

from foodsharing.core.domain_types import FileEvent, FileStatus
from foodsharing.core.errors import ErrorContext, InvalidTransitionError


LIFECYCLE_TRANSITIONS: MappingProxyType[tuple[FileStatus, FileEvent], FileStatus] = MappingProxyType({
    (FileStatus.CLIENT_UPLOAD_IN_PROGRESS, FileEvent.CLIENT_SUCCEEDED): FileStatus.UPLOADED_BY_CLIENT,
    (FileStatus.CLIENT_UPLOAD_IN_PROGRESS, FileEvent.CLIENT_FAILED): FileStatus.CLIENT_UPLOAD_ERROR,
    (FileStatus.UPLOADED_BY_CLIENT, FileEvent.CLAIMED): FileStatus.STORAGE_UPLOAD_IN_PROGRESS,
    (FileStatus.STORAGE_UPLOAD_IN_PROGRESS, FileEvent.TRANSFER_SUCCEEDED): FileStatus.UPLOADED_TO_STORAGE,
    (FileStatus.STORAGE_UPLOAD_IN_PROGRESS, FileEvent.TRANSFER_FAILED): FileStatus.STORAGE_UPLOAD_ERROR,
})

RECOVERY_TRANSITIONS: MappingProxyType[tuple[FileStatus, FileEvent], FileStatus] = MappingProxyType({
    (FileStatus.STORAGE_UPLOAD_IN_PROGRESS, FileEvent.LEASE_EXPIRED): FileStatus.UPLOADED_BY_CLIENT,
    (FileStatus.STORAGE_UPLOAD_ERROR, FileEvent.REQUEUED): FileStatus.UPLOADED_BY_CLIENT,
})

TERMINAL_STATUSES: frozenset[FileStatus] = frozenset({
    FileStatus.CLIENT_UPLOAD_ERROR,
    FileStatus.UPLOADED_TO_STORAGE,
    FileStatus.STORAGE_UPLOAD_ERROR,
})

_ALL_TRANSITIONS = {**LIFECYCLE_TRANSITIONS, **RECOVERY_TRANSITIONS}


def next_status(
    current: FileStatus, event: FileEvent, context: ErrorContext | None = None,
) -> FileStatus:
    """Target status for `event` applied to `current`, or InvalidTransitionError."""
    target = _ALL_TRANSITIONS.get((current, event))
    if target is None:
        raise InvalidTransitionError(current.name, event.value, context)
    return target


def source_statuses(event: FileEvent) -> frozenset[FileStatus]:
    """Every status from which `event` is legal."""
    return frozenset(src for (src, ev) in _ALL_TRANSITIONS if ev == event)


def source_status(event: FileEvent) -> FileStatus:
    """The single legal source status of `event` (every event has exactly one)."""
    (status,) = source_statuses(event)
    return status


def is_terminal(status: FileStatus) -> bool:
    return status in TERMINAL_STATUSES


def check_url_invariant(status: FileStatus, url: str | None) -> bool:
    """URL present iff the file reached storage."""
    if status == FileStatus.UPLOADED_TO_STORAGE:
        return bool(url)
    return url is None


def replay(events: list[FileEvent]) -> list[FileStatus]:
    """Statuses visited from CLIENT_UPLOAD_IN_PROGRESS applying `events` in order."""
    path = [FileStatus.CLIENT_UPLOAD_IN_PROGRESS]
    for event in events:
        path.append(next_status(path[-1], event))
    return path


# ─── Finalize Outcomes ───────────────────────────────────────────

@dataclass(frozen=True)
class TransferSucceeded:
    """Blob transfer finished; `url` is where the bytes now live."""
    url: str

    def __post_init__(self):
        if not self.url or not self.url.strip():
            raise ValueError("TransferSucceeded requires a non-empty url")


@dataclass(frozen=True)
class TransferFailed:
    """Blob transfer gave up; `reason` is for logs only, never persisted."""
    reason: str = ""


TransferOutcome = TransferSucceeded | TransferFailed


def outcome_event(outcome: TransferOutcome) -> FileEvent:
    if isinstance(outcome, TransferSucceeded):
        return FileEvent.TRANSFER_SUCCEEDED
    return FileEvent.TRANSFER_FAILED
