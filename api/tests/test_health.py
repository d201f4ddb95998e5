from __future__ import annotations

from funfarm.services import rewards


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["uptime_s"] >= 0


def test_config_exposes_reward_policy(client):
    response = client.get("/config")
    assert response.status_code == 200
    policy = response.json()["rewards"]
    assert policy["daily_reward_cap"] == rewards.DAILY_REWARD_CAP
    assert policy["quality_post_reward"] == rewards.QUALITY_POST_REWARD
    assert policy["max_interactions_per_day"] == rewards.MAX_INTERACTIONS_PER_DAY
    assert response.json()["platform_id"] == "fun_farm"


def test_redis_health_reports_unavailable_when_disabled(client):
    response = client.get("/health/redis")
    assert response.status_code == 503


def test_security_headers(client):
    response = client.get("/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
