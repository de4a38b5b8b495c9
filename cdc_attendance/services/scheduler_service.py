"""
Background jobs: abuse-gate counter sweeping and the keep-alive self ping.
One scheduler per process.
"""
import atexit
import logging

from apscheduler.schedulers.background import BackgroundScheduler

from cdc_attendance.services.keep_alive_service import ping_from_config

logger = logging.getLogger(__name__)


def sweep_abuse_counters(app):
    with app.app_context():
        gate = app.extensions.get('abuse_gate')
        if gate is not None:
            gate.sweep()


def keep_alive(app):
    ping_from_config(app.config)


def shutdown_scheduler(scheduler):
    if scheduler.running:
        scheduler.shutdown(wait=False)


def init_scheduler(app):
    """Create and start the background scheduler for this app"""
    scheduler = BackgroundScheduler(timezone=app.config['TIMEZONE'])
    scheduler.add_job(
        func=sweep_abuse_counters,
        args=[app],
        trigger='interval',
        minutes=app.config['ABUSE_SWEEP_INTERVAL_MINUTES'],
        id='sweep_abuse_counters',
        name='Evict stale rate-limit counters',
        replace_existing=True,
    )
    if app.config.get('KEEP_ALIVE_ENABLED') and app.config.get('KEEP_ALIVE_URL'):
        scheduler.add_job(
            func=keep_alive,
            args=[app],
            trigger='interval',
            minutes=app.config['KEEP_ALIVE_INTERVAL_MINUTES'],
            id='keep_alive',
            name='Keep-alive self ping',
            replace_existing=True,
        )
    scheduler.start()
    app.extensions['scheduler'] = scheduler
    logger.info(f"Scheduler started with jobs: {[job.id for job in scheduler.get_jobs()]}")

    # Ensure scheduler shuts down when app exits
    atexit.register(shutdown_scheduler, scheduler)
    return scheduler
