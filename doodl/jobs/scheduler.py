import os

from apscheduler.schedulers.background import BackgroundScheduler


scheduler = BackgroundScheduler()


def scheduler_running() -> bool:
    return scheduler.running


def start_scheduler(app):
    if not app.config.get("SCHEDULER_ENABLED", True):
        return
    if os.environ.get("WERKZEUG_RUN_MAIN") == "false":
        return
    if not scheduler.running:
        scheduler.start()
        app.logger.info("Background scheduler started")
