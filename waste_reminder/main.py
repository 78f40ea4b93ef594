import logging
import sys
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from waste_reminder.api.v1 import notifications

# Pipeline loggers (matcher, delivery, gateway) print to stdout
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logging.getLogger("waste_reminder").setLevel(logging.DEBUG)
from waste_reminder.config import settings
from waste_reminder.db.session import init_db
from waste_reminder.services.delivery import run_consumer_job
from waste_reminder.services.http_client import close_http_client, init_http_client
from waste_reminder.services.matcher import run_matcher_job
from waste_reminder.services.notification_queue import close_notification_queue, get_notification_queue
from prometheus_client import make_asgi_app

scheduler = AsyncIOScheduler()


def register_jobs(sched: AsyncIOScheduler) -> None:
    """Matcher on every wall-clock minute; consumer drains one batch per interval."""
    sched.add_job(run_matcher_job, "cron", minute="*", id="matcher", max_instances=1, coalesce=True)
    sched.add_job(
        run_consumer_job,
        "interval",
        seconds=settings.consumer_interval_seconds,
        id="consumer",
        max_instances=max(settings.consumer_max_instances, 1),
        coalesce=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.validate_production_config()
    await init_db()
    init_http_client(timeout=settings.serwersms_timeout_seconds)
    get_notification_queue()

    if settings.scheduler_enabled:
        register_jobs(scheduler)
        scheduler.start()
    yield
    if scheduler.running:
        scheduler.shutdown()
    await close_notification_queue()
    await close_http_client()


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200/minute"],
    storage_uri=settings.rate_limit_storage_uri,
)

app = FastAPI(
    title="Waste Reminder API",
    description="Waste-collection SMS reminders: matcher, delivery worker, diagnostics",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.include_router(notifications.router, prefix="/api/v1")

metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.get("/health")
@limiter.exempt
def health(request: Request):
    return {"status": "ok"}
