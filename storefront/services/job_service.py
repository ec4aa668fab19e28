"""
Background job outbox.

Jobs are rows written in the same transaction as the state change that
triggers them, so a committed payment always has its POS sync and SMS work
recorded. Workers claim rows with a conditional pending -> running update;
a running row whose lease expired is handed back (at-least-once), which is
why every handler is idempotent on its own.
"""
import logging
import time
from datetime import timedelta
from typing import Callable, Dict, Optional

from flask import current_app
from sqlalchemy import update, or_

from storefront.blueprints.metrics import jobs_total
from storefront.models import BackgroundJob, JobKind, JobStatus
from storefront.utils.dates import utcnow
from storefront.utils.formatters import short_error

logger = logging.getLogger(__name__)

# POS sync is never retried automatically (staff reprint instead). SMS jobs
# run once; send_with_retry already makes up to 3 transport attempts.
DEFAULT_MAX_ATTEMPTS = {
    JobKind.POS_SYNC.value: 1,
    JobKind.SMS_CONFIRMATION.value: 1,
    JobKind.SMS_READY.value: 1,
}

RETRY_DELAY_SECONDS = 30


def enqueue_job(session, kind: str, order_id: int, max_attempts: Optional[int] = None,
                run_after=None) -> BackgroundJob:
    """
    Add a job to the current transaction. The caller commits.
    """
    kind = JobKind(kind).value
    job = BackgroundJob(
        kind=kind,
        order_id=order_id,
        status=JobStatus.PENDING.value,
        attempts=0,
        max_attempts=max_attempts or DEFAULT_MAX_ATTEMPTS.get(kind, 1),
        run_after=run_after or utcnow(),
    )
    session.add(job)
    return job


def _handlers() -> Dict[str, Callable]:
    from storefront.services import notification_service, pos_sync_service

    return {
        JobKind.POS_SYNC.value: pos_sync_service.sync_order_to_pos,
        JobKind.SMS_CONFIRMATION.value: notification_service.send_confirmation_sms,
        JobKind.SMS_READY.value: notification_service.send_ready_sms,
    }


def reclaim_stale_jobs(session, lease_seconds: Optional[int] = None) -> int:
    """Hand back running jobs whose worker disappeared."""
    lease_seconds = lease_seconds or current_app.config.get('JOBS_LEASE_SECONDS', 300)
    cutoff = utcnow() - timedelta(seconds=lease_seconds)
    result = session.execute(
        update(BackgroundJob)
        .where(
            BackgroundJob.status == JobStatus.RUNNING.value,
            or_(BackgroundJob.locked_at.is_(None), BackgroundJob.locked_at < cutoff),
        )
        .values(status=JobStatus.PENDING.value, locked_at=None)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    if result.rowcount:
        logger.warning(f"[JOBS] Reclaimed {result.rowcount} stale job(s)")
    return result.rowcount


def claim_job(session, job_id: int) -> bool:
    """Move one job from pending to running. False when another worker won."""
    result = session.execute(
        update(BackgroundJob)
        .where(BackgroundJob.id == job_id, BackgroundJob.status == JobStatus.PENDING.value)
        .values(
            status=JobStatus.RUNNING.value,
            locked_at=utcnow(),
            attempts=BackgroundJob.attempts + 1,
        )
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return result.rowcount == 1


def _finish(session, job_id: int, status: str, error: Optional[str] = None, run_after=None) -> None:
    values = {'status': status, 'locked_at': None, 'last_error': error}
    if status in (JobStatus.DONE.value, JobStatus.FAILED.value):
        values['finished_at'] = utcnow()
    if run_after is not None:
        values['run_after'] = run_after
    session.execute(
        update(BackgroundJob)
        .where(BackgroundJob.id == job_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    session.commit()


def run_job(session, job: BackgroundJob, handlers: Optional[Dict[str, Callable]] = None) -> str:
    """
    Execute a claimed job and record the outcome.

    Returns:
        The job's resulting status
    """
    kind = job.kind
    status = _execute(session, job, handlers or _handlers())
    jobs_total.labels(kind=kind, status=status).inc()
    return status


def _execute(session, job: BackgroundJob, handlers: Dict[str, Callable]) -> str:
    handler = handlers.get(job.kind)
    if handler is None:
        logger.error(f"[JOBS] No handler for job {job.id} kind={job.kind}")
        _finish(session, job.id, JobStatus.FAILED.value, f"unknown job kind: {job.kind}")
        return JobStatus.FAILED.value

    try:
        handler(session, job.order_id)
    except Exception as e:
        session.rollback()
        error = short_error(e, 500)
        if job.attempts < job.max_attempts:
            retry_at = utcnow() + timedelta(seconds=RETRY_DELAY_SECONDS * job.attempts)
            logger.warning(
                f"[JOBS] Job {job.id} ({job.kind}) attempt {job.attempts}/{job.max_attempts} failed: {error}"
            )
            _finish(session, job.id, JobStatus.PENDING.value, error, run_after=retry_at)
            return JobStatus.PENDING.value
        logger.error(f"[JOBS] Job {job.id} ({job.kind}) failed for order {job.order_id}: {error}")
        _finish(session, job.id, JobStatus.FAILED.value, error)
        return JobStatus.FAILED.value

    _finish(session, job.id, JobStatus.DONE.value)
    logger.info(f"[JOBS] Job {job.id} ({job.kind}) done for order {job.order_id}")
    return JobStatus.DONE.value


def process_pending_jobs(session, limit: Optional[int] = None,
                         handlers: Optional[Dict[str, Callable]] = None) -> Dict[str, int]:
    """
    Run one batch of due jobs.

    Returns:
        Counts per resulting status, plus 'claimed'
    """
    limit = limit or current_app.config.get('JOBS_BATCH_SIZE', 20)
    reclaim_stale_jobs(session)

    due = (
        session.query(BackgroundJob.id)
        .filter(
            BackgroundJob.status == JobStatus.PENDING.value,
            BackgroundJob.run_after <= utcnow(),
        )
        .order_by(BackgroundJob.id)
        .limit(limit)
        .all()
    )
    session.commit()

    stats = {'claimed': 0, JobStatus.DONE.value: 0, JobStatus.FAILED.value: 0, JobStatus.PENDING.value: 0}
    handlers = handlers or _handlers()
    for (job_id,) in due:
        if not claim_job(session, job_id):
            continue
        stats['claimed'] += 1
        job = session.get(BackgroundJob, job_id)
        session.refresh(job)
        outcome = run_job(session, job, handlers)
        stats[outcome] += 1

    if stats['claimed']:
        logger.info(f"[JOBS] Batch finished: {stats}")
    return stats


def run_worker(session_factory: Callable, poll_interval: Optional[float] = None,
               max_batches: Optional[int] = None) -> None:
    """Poll for due jobs until interrupted (or max_batches batches ran)."""
    poll_interval = poll_interval or current_app.config.get('JOBS_POLL_INTERVAL', 2)
    batches = 0
    logger.info(f"[JOBS] Worker started (poll={poll_interval}s)")
    try:
        while max_batches is None or batches < max_batches:
            session = session_factory()
            try:
                stats = process_pending_jobs(session)
            finally:
                session.close()
            batches += 1
            if not stats['claimed']:
                time.sleep(poll_interval)
    except KeyboardInterrupt:
        logger.info("[JOBS] Worker stopped")
