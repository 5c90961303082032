"""Job queue abstraction between the scheduler and whatever executes jobs."""

from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from storesync.scrapers.types import utcnow


@dataclass(frozen=True)
class CrawlJob:
    source_id: UUID
    full_rescrape: bool = False
    dry_run: bool = False
    enqueued_at: datetime = field(default_factory=utcnow, compare=False)


class JobQueue(ABC):
    """Minimal queue contract.

    enqueue() accepts a job (False when that source is already queued or
    running); tick() returns the jobs the caller should start now;
    complete() releases a started job's slot.
    """

    @abstractmethod
    def enqueue(self, job: CrawlJob) -> bool:
        ...

    @abstractmethod
    def tick(self) -> list[CrawlJob]:
        ...

    @abstractmethod
    def complete(self, job: CrawlJob) -> None:
        ...

    def is_active(self, source_id: UUID) -> bool:
        """Whether the source is queued or running in this queue, if it can tell."""
        return False


class InProcessJobQueue(JobQueue):
    """FIFO with a global concurrency cap. Excess jobs wait; they are never dropped."""

    def __init__(self, max_concurrent: int):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self._pending: deque[CrawlJob] = deque()
        self._running: dict[UUID, CrawlJob] = {}

    def enqueue(self, job: CrawlJob) -> bool:
        if self.is_active(job.source_id):
            return False
        self._pending.append(job)
        return True

    def tick(self) -> list[CrawlJob]:
        ready = []
        while self._pending and len(self._running) < self.max_concurrent:
            job = self._pending.popleft()
            self._running[job.source_id] = job
            ready.append(job)
        return ready

    def complete(self, job: CrawlJob) -> None:
        self._running.pop(job.source_id, None)

    def is_active(self, source_id: UUID) -> bool:
        return source_id in self._running or any(j.source_id == source_id for j in self._pending)

    @property
    def running_count(self) -> int:
        return len(self._running)

    @property
    def pending_count(self) -> int:
        return len(self._pending)
