from datetime import datetime, timedelta, timezone

import pytest
from prometheus_client.parser import text_string_to_metric_families

from neo_tracker import services


def samples(body, family_name):
    for family in text_string_to_metric_families(body):
        if family.name == family_name:
            return family.samples
    return []


@pytest.mark.asyncio
async def test_request_metrics(client):
    resp = await client.get("/asteroids")
    assert resp.status_code == 200

    metrics_resp = await client.get("/metrics")
    assert metrics_resp.status_code == 200
    body = metrics_resp.text
    assert "http_requests_total" in body
    assert "http_request_latency_seconds" in body

    counts = [s for s in samples(body, "http_requests") if s.name == "http_requests_total"]
    assert any(s.labels["endpoint"] == "/asteroids" and s.value > 0 for s in counts)
    latency = [s for s in samples(body, "http_request_latency_seconds") if s.name.endswith("_count")]
    assert any(s.value > 0 for s in latency)


@pytest.mark.asyncio
async def test_notification_metrics(client, neo_record):
    from neo_tracker.database import SessionLocal

    soon = datetime.now(timezone.utc).date() + timedelta(days=1)
    db = SessionLocal()
    try:
        services.upsert_asteroids(
            db,
            [services.parse_neo(neo_record(neo_id="m1", hazardous=True, diameter=(1, 2),
                                           approaches=[(soon, "300000")]))],
        )
    finally:
        db.close()

    resp = await client.get("/notifications", headers={"X-User-Id": "metrics-user"})
    assert resp.json()["generated"] == 1

    body = (await client.get("/metrics")).text
    created = [
        s for s in samples(body, "notifications_created")
        if s.name == "notifications_created_total" and s.labels["notification_type"] == "new_hazardous"
    ]
    assert created and created[0].value >= 1
