"""In-memory registry of staging sessions and batch runs."""

from dataclasses import dataclass, field

from vintage_catalog.domain.ingestion import BatchRun
from vintage_catalog.domain.photos import StagingSession


@dataclass
class StagingSessionStore:
    """Holds in-flight sessions and runs for the lifetime of the process."""

    sessions: dict[str, StagingSession] = field(default_factory=dict)
    runs: dict[str, BatchRun] = field(default_factory=dict)

    def get_session(self, session_id: str) -> StagingSession | None:
        return self.sessions.get(session_id)

    def save_session(self, session: StagingSession) -> StagingSession:
        self.sessions[session.id] = session
        return session

    def discard_session(self, session_id: str) -> None:
        self.sessions.pop(session_id, None)

    def get_run(self, run_id: str) -> BatchRun | None:
        return self.runs.get(run_id)

    def save_run(self, batch: BatchRun) -> BatchRun:
        self.runs[batch.id] = batch
        return batch
