"""Job store implementations.

The store is the sole authority on job state. The queue proposes
transitions; the store records them and owns ordering:

- claimable jobs are ordered by ``priority`` (lower first), then by
  ``sequence`` (arrival order)
- ``claim_next`` is atomic: a job is handed to exactly one claimer
- delayed jobs whose ``run_at`` has passed are promoted to waiting when
  the next claim happens

Backends: in-memory (single process, tests), SQLite (single host, several
processes) and Redis (distributed).
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping

from reportflow.jobs.types import Job, JobNotFoundError, JobStatus

logger = logging.getLogger(__name__)

COUNTED_STATUSES = (
    JobStatus.WAITING,
    JobStatus.ACTIVE,
    JobStatus.COMPLETED,
    JobStatus.FAILED,
    JobStatus.DELAYED,
)


def _status_values(statuses: Iterable[JobStatus | str] | None) -> set[str] | None:
    if statuses is None:
        return None
    return {JobStatus(s).value for s in statuses}


class JobStore(ABC):
    """Abstract job storage backend."""

    def __init__(self, name: str) -> None:
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    def save(self, job: Job) -> Job:
        """Insert or replace a job."""
        ...

    @abstractmethod
    def update(self, job: Job) -> Job:
        """Replace a job that is still stored.

        Raises:
            JobNotFoundError: If the job was deleted meanwhile.
        """
        ...

    @abstractmethod
    def get(self, job_id: str) -> Job | None:
        ...

    @abstractmethod
    def delete(self, job_id: str) -> bool:
        """Delete a job; return False if it did not exist."""
        ...

    @abstractmethod
    def list(self, statuses: Iterable[JobStatus | str] | None = None) -> list[Job]:
        """Jobs with any of ``statuses`` (all jobs when None), unordered."""
        ...

    @abstractmethod
    def claim_next(self, now: int) -> Job | None:
        """Atomically move the next claimable job to active and return it."""
        ...

    @abstractmethod
    def counts(self) -> dict[str, int]:
        """Number of jobs per status."""
        ...

    @abstractmethod
    def next_sequence(self) -> int:
        ...

    @abstractmethod
    def is_paused(self) -> bool:
        ...

    @abstractmethod
    def set_paused(self, paused: bool) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        """Delete every job."""
        ...

    def close(self) -> None:
        pass


# =============================================================================
# In-memory
# =============================================================================


class InMemoryJobStore(JobStore):
    """Thread-safe in-memory job store.

    Example:
        >>> store = InMemoryJobStore()
        >>> store.save(job)
        >>> store.claim_next(now_ms())
    """

    def __init__(self, name: str = "memory") -> None:
        super().__init__(name)
        self._jobs: dict[str, Job] = {}
        self._sequence = 0
        self._paused = False
        self._lock = threading.RLock()

    def save(self, job: Job) -> Job:
        with self._lock:
            self._jobs[job.id] = job
            return job

    def update(self, job: Job) -> Job:
        with self._lock:
            if job.id not in self._jobs:
                raise JobNotFoundError(job.id)
            self._jobs[job.id] = job
            return job

    def get(self, job_id: str) -> Job | None:
        with self._lock:
            return self._jobs.get(job_id)

    def delete(self, job_id: str) -> bool:
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def list(self, statuses: Iterable[JobStatus | str] | None = None) -> list[Job]:
        wanted = _status_values(statuses)
        with self._lock:
            return [
                job for job in self._jobs.values()
                if wanted is None or job.status.value in wanted
            ]

    def claim_next(self, now: int) -> Job | None:
        with self._lock:
            for job in self._jobs.values():
                if job.status == JobStatus.DELAYED and (job.run_at or 0) <= now:
                    job.status = JobStatus.WAITING
                    job.run_at = None

            waiting = [j for j in self._jobs.values() if j.status == JobStatus.WAITING]
            if not waiting:
                return None
            job = min(waiting, key=lambda j: (j.priority, j.sequence))
            job.status = JobStatus.ACTIVE
            job.processed_on = now
            return job

    def counts(self) -> dict[str, int]:
        with self._lock:
            counts = {s.value: 0 for s in COUNTED_STATUSES}
            for job in self._jobs.values():
                counts[job.status.value] = counts.get(job.status.value, 0) + 1
            return counts

    def next_sequence(self) -> int:
        with self._lock:
            self._sequence += 1
            return self._sequence

    def is_paused(self) -> bool:
        return self._paused

    def set_paused(self, paused: bool) -> None:
        self._paused = paused

    def clear(self) -> None:
        with self._lock:
            self._jobs.clear()


# =============================================================================
# SQLite
# =============================================================================


class SQLiteJobStore(JobStore):
    """SQLite-backed job store.

    Several processes on one host may share a database file; claims run in
    ``BEGIN IMMEDIATE`` transactions so only one of them wins a job.

    Example:
        >>> store = SQLiteJobStore("jobs.db")
    """

    def __init__(self, database: str | Path = ":memory:", name: str = "sqlite") -> None:
        super().__init__(name)
        self._database = str(database)
        self._lock = threading.RLock()
        self._connection = sqlite3.connect(
            self._database,
            check_same_thread=False,
            isolation_level=None,
        )
        self._connection.row_factory = sqlite3.Row
        self._init_schema()

    @contextmanager
    def _transaction(self, immediate: bool = False) -> Iterator[sqlite3.Cursor]:
        """Run statements in one transaction with commit/rollback."""
        with self._lock:
            cursor = self._connection.cursor()
            cursor.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            try:
                yield cursor
                cursor.execute("COMMIT")
            except Exception:
                cursor.execute("ROLLBACK")
                raise
            finally:
                cursor.close()

    def _init_schema(self) -> None:
        with self._transaction() as cursor:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS jobs (
                    id TEXT PRIMARY KEY,
                    status TEXT NOT NULL,
                    priority INTEGER NOT NULL,
                    sequence INTEGER NOT NULL,
                    run_at INTEGER,
                    payload TEXT NOT NULL
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_jobs_claim
                ON jobs(status, priority, sequence)
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS queue_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)

    @staticmethod
    def _write(cursor: sqlite3.Cursor, job: Job) -> None:
        cursor.execute(
            """INSERT OR REPLACE INTO jobs (id, status, priority, sequence, run_at, payload)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                job.id,
                job.status.value,
                job.priority,
                job.sequence,
                job.run_at,
                json.dumps(job.to_dict(), default=str),
            ),
        )

    @staticmethod
    def _row_to_job(row: sqlite3.Row) -> Job:
        return Job.from_dict(json.loads(row["payload"]))

    def save(self, job: Job) -> Job:
        with self._transaction() as cursor:
            self._write(cursor, job)
        return job

    def update(self, job: Job) -> Job:
        with self._transaction() as cursor:
            cursor.execute(
                """UPDATE jobs SET status = ?, priority = ?, sequence = ?, run_at = ?, payload = ?
                   WHERE id = ?""",
                (
                    job.status.value,
                    job.priority,
                    job.sequence,
                    job.run_at,
                    json.dumps(job.to_dict(), default=str),
                    job.id,
                ),
            )
            if cursor.rowcount == 0:
                raise JobNotFoundError(job.id)
        return job

    def get(self, job_id: str) -> Job | None:
        with self._transaction() as cursor:
            cursor.execute("SELECT payload FROM jobs WHERE id = ?", (job_id,))
            row = cursor.fetchone()
            return self._row_to_job(row) if row else None

    def delete(self, job_id: str) -> bool:
        with self._transaction() as cursor:
            cursor.execute("DELETE FROM jobs WHERE id = ?", (job_id,))
            return cursor.rowcount > 0

    def list(self, statuses: Iterable[JobStatus | str] | None = None) -> list[Job]:
        wanted = _status_values(statuses)
        with self._transaction() as cursor:
            if wanted is None:
                cursor.execute("SELECT payload FROM jobs")
            else:
                marks = ", ".join("?" for _ in wanted)
                cursor.execute(
                    f"SELECT payload FROM jobs WHERE status IN ({marks})", tuple(wanted)
                )
            return [self._row_to_job(row) for row in cursor.fetchall()]

    def claim_next(self, now: int) -> Job | None:
        with self._transaction(immediate=True) as cursor:
            cursor.execute(
                """SELECT payload FROM jobs
                   WHERE status = 'delayed' AND run_at IS NOT NULL AND run_at <= ?""",
                (now,),
            )
            for row in cursor.fetchall():
                job = self._row_to_job(row)
                job.status = JobStatus.WAITING
                job.run_at = None
                self._write(cursor, job)

            cursor.execute(
                """SELECT payload FROM jobs WHERE status = 'waiting'
                   ORDER BY priority ASC, sequence ASC LIMIT 1"""
            )
            row = cursor.fetchone()
            if row is None:
                return None
            job = self._row_to_job(row)
            job.status = JobStatus.ACTIVE
            job.processed_on = now
            self._write(cursor, job)
            return job

    def counts(self) -> dict[str, int]:
        counts = {s.value: 0 for s in COUNTED_STATUSES}
        with self._transaction() as cursor:
            cursor.execute("SELECT status, COUNT(*) FROM jobs GROUP BY status")
            for status, count in cursor.fetchall():
                counts[status] = count
        return counts

    def next_sequence(self) -> int:
        with self._transaction(immediate=True) as cursor:
            cursor.execute(
                """INSERT INTO queue_meta (key, value) VALUES ('sequence', '1')
                   ON CONFLICT(key) DO UPDATE SET value = CAST(value AS INTEGER) + 1"""
            )
            cursor.execute("SELECT value FROM queue_meta WHERE key = 'sequence'")
            return int(cursor.fetchone()[0])

    def is_paused(self) -> bool:
        with self._transaction() as cursor:
            cursor.execute("SELECT value FROM queue_meta WHERE key = 'paused'")
            row = cursor.fetchone()
            return bool(row and row[0] == "1")

    def set_paused(self, paused: bool) -> None:
        with self._transaction() as cursor:
            cursor.execute(
                "INSERT OR REPLACE INTO queue_meta (key, value) VALUES ('paused', ?)",
                ("1" if paused else "0",),
            )

    def clear(self) -> None:
        with self._transaction() as cursor:
            cursor.execute("DELETE FROM jobs")

    def close(self) -> None:
        with self._lock:
            self._connection.close()


# =============================================================================
# Redis
# =============================================================================


class RedisJobStore(JobStore):
    """Redis-backed job store for multi-host deployments.

    Layout (all keys under ``key_prefix``):

    - ``job:<id>``: job JSON
    - ``status:<status>``: set of job ids per status
    - ``waiting``: sorted set scored by priority then sequence
    - ``delayed``: sorted set scored by ``run_at``
    - ``sequence``: arrival counter
    - ``paused``: pause flag

    Claims use ``ZPOPMIN``, so each waiting job goes to one claimer.
    Requires: pip install redis
    """

    # priority * PRIORITY_SPAN + sequence keeps both orderings in one float score
    PRIORITY_SPAN = 10**12

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        key_prefix: str = "reportflow:report-generation:",
        name: str = "redis",
        client: Any = None,
    ) -> None:
        super().__init__(name)
        self._redis_url = redis_url
        self._key_prefix = key_prefix
        self._client: Any = client

    def _ensure_client(self) -> Any:
        if self._client is None:
            try:
                import redis
            except ImportError:
                raise RuntimeError("Redis not available. Install with: pip install redis")
            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    def _key(self, suffix: str) -> str:
        return f"{self._key_prefix}{suffix}"

    def _job_key(self, job_id: str) -> str:
        return self._key(f"job:{job_id}")

    def _status_key(self, status: JobStatus | str) -> str:
        return self._key(f"status:{JobStatus(status).value}")

    def _score(self, job: Job) -> float:
        return float(job.priority * self.PRIORITY_SPAN + job.sequence)

    @staticmethod
    def _decode(value: Any) -> str:
        return value.decode() if isinstance(value, bytes) else value

    def save(self, job: Job) -> Job:
        pipe = self._ensure_client().pipeline()
        self._queue_writes(pipe, job)
        pipe.execute()
        return job

    def update(self, job: Job) -> Job:
        key = self._job_key(job.id)

        def write_if_present(pipe: Any) -> None:
            if not pipe.exists(key):
                raise JobNotFoundError(job.id)
            pipe.multi()
            self._queue_writes(pipe, job)

        # WATCH aborts and retries the write if the job key changes meanwhile
        self._ensure_client().transaction(write_if_present, key)
        return job

    def _queue_writes(self, pipe: Any, job: Job) -> None:
        pipe.set(self._job_key(job.id), json.dumps(job.to_dict(), default=str))
        for status in JobStatus:
            if status != job.status:
                pipe.srem(self._status_key(status), job.id)
        pipe.sadd(self._status_key(job.status), job.id)

        if job.status == JobStatus.WAITING:
            pipe.zadd(self._key("waiting"), {job.id: self._score(job)})
        else:
            pipe.zrem(self._key("waiting"), job.id)
        if job.status == JobStatus.DELAYED:
            pipe.zadd(self._key("delayed"), {job.id: float(job.run_at or 0)})
        else:
            pipe.zrem(self._key("delayed"), job.id)

    def get(self, job_id: str) -> Job | None:
        data = self._ensure_client().get(self._job_key(job_id))
        return Job.from_dict(json.loads(data)) if data else None

    def delete(self, job_id: str) -> bool:
        client = self._ensure_client()
        pipe = client.pipeline()
        pipe.delete(self._job_key(job_id))
        for status in JobStatus:
            pipe.srem(self._status_key(status), job_id)
        pipe.zrem(self._key("waiting"), job_id)
        pipe.zrem(self._key("delayed"), job_id)
        results = pipe.execute()
        return bool(results[0])

    def list(self, statuses: Iterable[JobStatus | str] | None = None) -> list[Job]:
        client = self._ensure_client()
        wanted = _status_values(statuses) or {s.value for s in JobStatus}
        ids: set[str] = set()
        for status in wanted:
            ids.update(self._decode(i) for i in client.smembers(self._status_key(status)))
        if not ids:
            return []
        payloads = client.mget([self._job_key(i) for i in ids])
        return [Job.from_dict(json.loads(p)) for p in payloads if p]

    def _promote_delayed(self, now: int) -> None:
        client = self._ensure_client()
        for raw_id in client.zrangebyscore(self._key("delayed"), "-inf", now):
            job_id = self._decode(raw_id)
            # zrem succeeds for exactly one concurrent promoter
            if not client.zrem(self._key("delayed"), job_id):
                continue
            job = self.get(job_id)
            if job is None:
                continue
            job.status = JobStatus.WAITING
            job.run_at = None
            self.save(job)

    def claim_next(self, now: int) -> Job | None:
        client = self._ensure_client()
        self._promote_delayed(now)
        while True:
            popped = client.zpopmin(self._key("waiting"))
            if not popped:
                return None
            job = self.get(self._decode(popped[0][0]))
            if job is None:
                continue
            job.status = JobStatus.ACTIVE
            job.processed_on = now
            return self.save(job)

    def counts(self) -> dict[str, int]:
        client = self._ensure_client()
        return {s.value: int(client.scard(self._status_key(s))) for s in COUNTED_STATUSES}

    def next_sequence(self) -> int:
        return int(self._ensure_client().incr(self._key("sequence")))

    def is_paused(self) -> bool:
        return self._ensure_client().get(self._key("paused")) in ("1", b"1")

    def set_paused(self, paused: bool) -> None:
        client = self._ensure_client()
        if paused:
            client.set(self._key("paused"), "1")
        else:
            client.delete(self._key("paused"))

    def clear(self) -> None:
        client = self._ensure_client()
        for key in client.scan_iter(f"{self._key_prefix}*"):
            client.delete(key)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


def create_store(store_type: str = "memory", **kwargs: Any) -> JobStore:
    """Create a job store by type name.

    Args:
        store_type: ``memory``, ``sqlite`` or ``redis``.
        **kwargs: Passed to the store constructor.

    Raises:
        ValueError: For an unknown store type.
    """
    stores: dict[str, type[JobStore]] = {
        "memory": InMemoryJobStore,
        "sqlite": SQLiteJobStore,
        "redis": RedisJobStore,
    }
    if store_type not in stores:
        raise ValueError(
            f"Unknown store type: {store_type}. Available: {', '.join(stores)}"
        )
    return stores[store_type](**kwargs)


def create_store_from_env(environ: Mapping[str, str] | None = None) -> JobStore:
    """Create the job store selected by ``REPORTFLOW_JOB_STORE``.

    ``sqlite`` (the default) keeps jobs in ``REPORTFLOW_JOB_DB``, falling back
    to ``jobs.db`` in the configuration directory, so API and worker
    processes on one host share a queue. ``redis`` connects using
    ``REDIS_HOST``/``REDIS_PORT``/``REDIS_PASSWORD``.
    """
    from reportflow.config import get_config_manager
    from reportflow.jobs.config import JOB_DB_ENV, JOB_STORE_ENV, RedisSettings

    env = os.environ if environ is None else environ
    store_type = (env.get(JOB_STORE_ENV) or "sqlite").lower()

    if store_type == "redis":
        return create_store("redis", redis_url=RedisSettings.from_env(env).url)
    if store_type == "sqlite":
        database = env.get(JOB_DB_ENV)
        if not database:
            config_dir = get_config_manager().config_dir
            config_dir.mkdir(parents=True, exist_ok=True)
            database = str(config_dir / "jobs.db")
        logger.debug(f"Using SQLite job store at {database}")
        return create_store("sqlite", database=database)
    return create_store(store_type)
