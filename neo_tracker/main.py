import asyncio
import json
import logging
import time
from datetime import date, datetime, timedelta, timezone

from fastapi import BackgroundTasks, Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)
from sqlalchemy.orm import Session
from sse_starlette.sse import EventSourceResponse

from . import config, models, notifications, schemas, services, watchlist
from .database import engine, get_db, session_scope
from .events import broker
from .scheduler import scheduler

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="NEO Tracker")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_headers=["*"])

# Prometheus metrics
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "http_status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_latency_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
)


@app.on_event("startup")
async def startup_event():
    scheduler.start()


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    method = request.method
    endpoint = request.url.path
    start_time = time.monotonic()
    response = await call_next(request)
    duration = time.monotonic() - start_time
    REQUEST_COUNT.labels(method=method, endpoint=endpoint, http_status=response.status_code).inc()
    REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(duration)
    return response


def current_user(x_user_id: str | None = Header(default=None)) -> str:
    # identity is issued upstream; this service only trusts the header
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing user")
    return x_user_id


def parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date")


@app.get("/health")
async def health():
    return {"status": "ok"}


# Catalog

@app.get("/asteroids")
async def list_asteroids(
    limit: int = config.DEFAULT_PAGE_SIZE,
    offset: int = 0,
    hazardous: str | None = None,
    db: Session = Depends(get_db),
):
    if hazardous is not None:
        if hazardous.lower() in {"true", "1"}:
            hazardous_only = True
        elif hazardous.lower() in {"false", "0"}:
            hazardous_only = False
        else:
            raise HTTPException(status_code=400, detail="Invalid hazardous")
    else:
        hazardous_only = False

    rows = services.get_cached_asteroids(db, limit=limit, offset=offset, hazardous_only=hazardous_only)
    return [schemas.AsteroidRead.model_validate(a) for a in rows]


@app.get("/asteroids/search")
async def search_asteroids(q: str = "", db: Session = Depends(get_db)):
    if len(q.strip()) < 2:
        return []
    return [schemas.AsteroidRead.model_validate(a) for a in services.search_asteroids(db, q.strip())]


@app.get("/asteroids/hazardous")
async def hazardous_asteroids(db: Session = Depends(get_db)):
    return [schemas.AsteroidRead.model_validate(a) for a in services.get_hazardous_asteroids(db)]


@app.get("/asteroids/stats")
async def asteroid_stats(db: Session = Depends(get_db)):
    return schemas.AsteroidStats(**services.get_asteroid_stats(db))


@app.get("/asteroids/{neo_id}")
async def get_asteroid(neo_id: str, db: Session = Depends(get_db)):
    a = services.get_asteroid(db, neo_id)
    if not a:
        raise HTTPException(status_code=404, detail="Not Found")
    return schemas.AsteroidRead.model_validate(a)


@app.post("/ingest")
async def ingest(
    background_tasks: BackgroundTasks,
    start_date: str | None = None,
    end_date: str | None = None,
):
    today = datetime.now(timezone.utc).date()
    end = parse_date(end_date) if end_date else today
    start = parse_date(start_date) if start_date else end - timedelta(days=7)
    if start > end:
        raise HTTPException(status_code=400, detail="Invalid date")

    def task():
        with session_scope() as db:
            try:
                services.ingest_feed(db, start, end)
            except services.FeedError:
                logger.warning("Ingest %s..%s failed", start, end, exc_info=True)

    background_tasks.add_task(task)
    return {"status": "started", "start_date": start.isoformat(), "end_date": end.isoformat()}


# Watch list

@app.get("/watched")
async def get_watched(user_id: str = Depends(current_user), db: Session = Depends(get_db)):
    return [schemas.WatchRead.model_validate(w) for w in watchlist.list_watched(db, user_id)]


@app.get("/watched/count")
async def get_watched_count(user_id: str = Depends(current_user), db: Session = Depends(get_db)):
    return {"count": watchlist.count_watched(db, user_id)}


@app.get("/watched/{neo_id}/status")
async def get_watch_status(
    neo_id: str, user_id: str = Depends(current_user), db: Session = Depends(get_db)
):
    return {"neo_id": neo_id, "watching": watchlist.is_watching(db, user_id, neo_id)}


@app.post("/watched", status_code=201)
async def add_watched(
    data: schemas.WatchCreate,
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    if services.get_asteroid(db, data.neo_id) is None:
        raise HTTPException(status_code=404, detail="Not Found")
    try:
        obj = watchlist.add_watch(db, user_id, data)
    except watchlist.AlreadyWatchingError:
        raise HTTPException(status_code=409, detail="Already watching")
    return schemas.WatchRead.model_validate(obj)


@app.patch("/watched/{watch_id}")
async def update_watched(
    watch_id: int,
    updates: schemas.WatchUpdate,
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    obj = watchlist.update_watch(db, user_id, watch_id, updates)
    if not obj:
        raise HTTPException(status_code=404, detail="Not Found")
    return schemas.WatchRead.model_validate(obj)


@app.delete("/watched/{neo_id}", status_code=204)
async def delete_watched(
    neo_id: str, user_id: str = Depends(current_user), db: Session = Depends(get_db)
):
    if not watchlist.remove_watch(db, user_id, neo_id):
        raise HTTPException(status_code=404, detail="Not Found")
    return Response(status_code=204)


# Notifications

@app.get("/notifications")
async def get_notifications(
    limit: int = 50,
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    generated = notifications.generate_notifications(db, user_id)
    rows = notifications.list_notifications(db, user_id, limit=max(1, min(limit, config.MAX_PAGE_SIZE)))
    return schemas.NotificationList(
        generated=generated,
        notifications=[schemas.NotificationRead.model_validate(n) for n in rows],
    )


@app.get("/notifications/unread-count")
async def get_unread_count(user_id: str = Depends(current_user), db: Session = Depends(get_db)):
    return schemas.UnreadCount(count=notifications.unread_count(db, user_id))


@app.post("/notifications", status_code=201)
async def create_notification(
    data: schemas.NotificationCreate,
    user_id: str = Depends(current_user),
    db: Session = Depends(get_db),
):
    obj = notifications.create_custom_notification(db, user_id, data)
    return schemas.NotificationRead.model_validate(obj)


@app.post("/notifications/read-all")
async def read_all_notifications(user_id: str = Depends(current_user), db: Session = Depends(get_db)):
    return {"updated": notifications.mark_all_read(db, user_id)}


@app.post("/notifications/{notification_id}/read", status_code=204)
async def read_notification(
    notification_id: int, user_id: str = Depends(current_user), db: Session = Depends(get_db)
):
    if not notifications.mark_read(db, user_id, notification_id):
        raise HTTPException(status_code=404, detail="Not Found")
    return Response(status_code=204)


@app.delete("/notifications/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: int, user_id: str = Depends(current_user), db: Session = Depends(get_db)
):
    if not notifications.delete_notification(db, user_id, notification_id):
        raise HTTPException(status_code=404, detail="Not Found")
    return Response(status_code=204)


@app.get("/stream/notifications")
async def stream_notifications(request: Request, user_id: str = Depends(current_user)):
    queue = broker.subscribe(user_id)

    async def event_generator():
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    data = await asyncio.wait_for(queue.get(), timeout=15)
                    yield {"event": "notification", "data": json.dumps(data)}
                except asyncio.TimeoutError:
                    yield {"event": "heartbeat", "data": "ping"}
        finally:
            broker.unsubscribe(user_id, queue)

    return EventSourceResponse(event_generator())


@app.get("/metrics")
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
