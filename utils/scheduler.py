import logging

from apscheduler.schedulers.background import BackgroundScheduler

from models import db
from utils.clock import now_ms, utcnow
from utils.payment_timeout import expire_stale_negotiations, sweep_payment_timeouts
from utils.stage_sync import sync_all_stages

logger = logging.getLogger(__name__)


def run_housekeeping(app):
    with app.app_context():
        try:
            now = utcnow()
            sweep_payment_timeouts(now)
            expire_stale_negotiations(now)
            sync_all_stages(now_ms())
        except Exception:
            logger.exception("Housekeeping run failed")
            db.session.rollback()


def start_scheduler(app, minutes=1):
    scheduler = BackgroundScheduler(daemon=True)
    scheduler.add_job(run_housekeeping, "interval", minutes=minutes, args=[app], max_instances=1, coalesce=True)
    scheduler.start()
    return scheduler
