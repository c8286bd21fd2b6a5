import os
import logging
import fcntl
import tempfile
import threading
import uuid
import atexit
from datetime import datetime
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger
from config import Config

logger = logging.getLogger(__name__)

scheduler = None
scheduler_lock_file = None
_scheduler_guard = threading.Lock()

def _get_or_start_scheduler():
    """Return the running background scheduler, starting it on first use"""
    global scheduler

    with _scheduler_guard:
        if scheduler is None:
            scheduler = BackgroundScheduler(timezone=getattr(Config, 'SCHEDULER_TIMEZONE', 'UTC'))
            scheduler.start()
            atexit.register(_cleanup)
        return scheduler

def _cleanup():
    global scheduler_lock_file
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
    if scheduler_lock_file:
        try:
            fcntl.flock(scheduler_lock_file.fileno(), fcntl.LOCK_UN)
            scheduler_lock_file.close()
            os.remove(scheduler_lock_file.name)
        except OSError:
            pass

def init_scheduler(app):
    """Start periodic cafe discovery, guarded against duplicate instances across workers"""
    global scheduler_lock_file

    if app.config.get('TESTING'):
        logger.info("Scheduler disabled in TESTING")
        return None

    if not app.config.get('AUTO_START_SCHEDULER', False):
        logger.info("Scheduler disabled by config")
        return None

    # Try to acquire an exclusive lock to prevent duplicate schedulers
    lock_path = os.path.join(tempfile.gettempdir(), 'cafe_scout_scheduler.lock')
    try:
        scheduler_lock_file = open(lock_path, 'w')
        fcntl.flock(scheduler_lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        scheduler_lock_file.write(str(os.getpid()))
        scheduler_lock_file.flush()
        logger.info(f"Acquired scheduler lock (PID: {os.getpid()})")
    except IOError:
        logger.info("Another scheduler instance is already running, skipping initialization")
        return None

    try:
        sched = _get_or_start_scheduler()
        interval_hours = int(app.config.get('DISCOVERY_INTERVAL_HOURS', Config.DISCOVERY_INTERVAL_HOURS))
        area = app.config.get('DISCOVERY_AREA', Config.DISCOVERY_AREA)

        sched.add_job(
            func=run_discovery,
            args=[app, area],
            trigger=IntervalTrigger(hours=interval_hours),
            id='periodic_cafe_discovery',
            name=f"Cafe discovery ({area})",
            replace_existing=True,
            next_run_time=datetime.now(sched.timezone),
        )

        logger.info("Scheduler initialized. Discovery every %sh for %s", interval_hours, area)
        return sched

    except Exception as e:
        logger.error(f"Failed to initialize scheduler: {str(e)}")
        return None

def run_discovery(app, area=None):
    """Fetch AI-proposed cafes and merge the new ones. Never raises."""
    with app.app_context():
        try:
            from services.anthropic_service import AnthropicService
            from services.cafe_service import CafeService

            logger.info(f"Starting cafe discovery for {area or Config.DISCOVERY_AREA}")
            cafes = AnthropicService().discover_cafes(area)
            added = CafeService.merge_discovered(cafes)
            logger.info(f"Cafe discovery completed. {added} new of {len(cafes)} proposed")
            return added

        except Exception as e:
            logger.error(f"Cafe discovery failed: {str(e)}")
            return 0

def trigger_discovery(app, area=None):
    """Queue a one-off discovery run on the background scheduler; returns the job id"""
    sched = _get_or_start_scheduler()
    job = sched.add_job(
        func=run_discovery,
        args=[app, area],
        trigger=DateTrigger(run_date=datetime.now(sched.timezone)),
        id=f"discovery_{uuid.uuid4().hex[:12]}",
        name=f"Manual cafe discovery ({area or Config.DISCOVERY_AREA})",
    )
    logger.info(f"Queued cafe discovery job {job.id}")
    return job.id

def cancel_discovery(job_id):
    """Remove a discovery job that has not started yet. Returns False if it is unknown or already ran."""
    if scheduler is None:
        return False
    try:
        scheduler.remove_job(job_id)
    except JobLookupError:
        return False
    logger.info(f"Cancelled cafe discovery job {job_id}")
    return True

def get_scheduler_status():
    """Get current scheduler status"""
    if scheduler is None:
        return {"status": "not_initialized"}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            "trigger": str(job.trigger)
        })

    return {
        "status": "running" if scheduler.running else "stopped",
        "jobs": jobs
    }
