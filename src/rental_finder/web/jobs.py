from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from rental_finder.services.transit import EnrichmentResult, TransitEnrichment


log = logging.getLogger(__name__)


@dataclass
class EnrichmentJob:
    id: str
    status: str = "starting"  # starting|running|completed|failed
    rows: int = 0
    enriched: int = 0
    skipped: int = 0
    errors: int = 0
    last_error: Optional[str] = None
    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None
    _thread: Optional[threading.Thread] = None

    def as_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "status": self.status,
            "rows": self.rows,
            "enriched": self.enriched,
            "skipped": self.skipped,
            "errors": self.errors,
            "last_error": self.last_error,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


class JobAlreadyRunning(RuntimeError):
    pass


class EnrichmentJobManager:
    """Runs transit sweeps on background threads, one at a time."""

    def __init__(self, factory: Callable[[], TransitEnrichment]) -> None:
        self._factory = factory
        self._jobs: Dict[str, EnrichmentJob] = {}
        self._lock = threading.Lock()

    def start(self) -> EnrichmentJob:
        with self._lock:
            if any(j.status in ("starting", "running") for j in self._jobs.values()):
                raise JobAlreadyRunning("A transit sweep is already running")
            job = EnrichmentJob(id=uuid.uuid4().hex[:8])
            self._jobs[job.id] = job
        t = threading.Thread(target=self._run, args=(job,), daemon=True)
        job._thread = t
        job.status = "running"
        t.start()
        return job

    def _run(self, job: EnrichmentJob) -> None:
        try:
            results: List[EnrichmentResult] = self._factory().run()
            job.rows = len(results)
            job.enriched = sum(1 for r in results if r.ok)
            job.skipped = sum(1 for r in results if r.skipped)
            failed = [r for r in results if r.error]
            job.errors = len(failed)
            if failed:
                job.last_error = failed[-1].error
            job.status = "completed"
        except Exception as e:  # store unreachable before the sweep could start
            log.exception("Transit sweep %s failed", job.id)
            job.errors += 1
            job.last_error = str(e)
            job.status = "failed"
        finally:
            job.finished_at = time.time()

    def status(self, job_id: str) -> Optional[EnrichmentJob]:
        with self._lock:
            return self._jobs.get(job_id)

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[EnrichmentJob]:
        job = self.status(job_id)
        if job and job._thread:
            job._thread.join(timeout)
        return job

    def list_recent(self, limit: int = 5) -> List[EnrichmentJob]:
        with self._lock:
            jobs = list(self._jobs.values())
        jobs.sort(key=lambda j: j.started_at, reverse=True)
        return jobs[:limit]
