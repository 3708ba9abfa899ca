from celery import Celery
from celery.schedules import crontab

from mainevents.core.config import CELERY_ALWAYS_EAGER, NOTIFICATION_CLEANUP_DAYS, get_redis_url


def make_celery(app_name: str = "mainevents") -> Celery:
    redis_url = get_redis_url()
    celery = Celery(app_name, broker=redis_url, backend=redis_url, include=["mainevents.tasks"])
    celery.conf.task_serializer = "json"
    celery.conf.result_serializer = "json"
    celery.conf.accept_content = ["json"]
    celery.conf.result_persistent = False
    celery.conf.task_track_started = True
    celery.conf.task_always_eager = CELERY_ALWAYS_EAGER
    celery.conf.beat_schedule = {
        "send-event-reminders": {
            "task": "mainevents.tasks.send_event_reminders_task",
            "schedule": crontab(hour=9, minute=0),
        },
        "cleanup-archived-notifications": {
            "task": "mainevents.tasks.cleanup_notifications_task",
            "schedule": crontab(hour=2, minute=0),
            "args": (NOTIFICATION_CLEANUP_DAYS,),
        },
    }
    return celery


celery_app = make_celery()
