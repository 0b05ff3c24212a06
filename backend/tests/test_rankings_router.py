import asyncio
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from app import config
from app.main import app
from app.models import Player, Team
from app.services import scheduler as scheduler_module
from app.services.locks import partition_locks
from app.services.ranking import recalculate_rankings
from app.services.scheduler import RankingScheduler

ADMIN = {"X-Admin-Token": "s3cret"}


@pytest.fixture()
def client(monkeypatch):
    monkeypatch.setattr(config, "ADMIN_TOKEN", "s3cret")
    # One shared in-memory connection; keep partition runs sequential.
    monkeypatch.setattr(scheduler_module, "_scheduler", RankingScheduler(max_parallel=1))
    with TestClient(app) as client:
        yield client


def _seed(session_maker, *entities):
    async def run():
        async with session_maker() as session:
            session.add_all(entities)
            await session.commit()

    asyncio.run(run())


def _rank(session_maker, sport, category, ranking_date):
    async def run():
        async with session_maker() as session:
            await recalculate_rankings(session, sport, category, ranking_date=ranking_date)

    asyncio.run(run())


def test_latest_rankings_endpoint(client, session_maker):
    _seed(
        session_maker,
        Player(id="a", name="A", sport_type="FOOTBALL", rating=1000.0),
        Player(id="b", name="B", sport_type="FOOTBALL", rating=1200.0),
    )
    _rank(session_maker, "FOOTBALL", "PLAYER", datetime(2024, 1, 1, 2, tzinfo=timezone.utc))

    resp = client.get("/api/v0/rankings/FOOTBALL/GLOBAL", params={"limit": 1})
    assert resp.status_code == 200
    body = resp.json()
    assert len(body) == 1
    assert body[0]["entityId"] == "b"
    assert body[0]["rank"] == 1
    assert body[0]["rankingCategory"] == "PLAYER"
    assert body[0]["previousRank"] is None
    assert body[0]["rankChange"] is None
    assert body[0]["rankingDate"].startswith("2024-01-01T02:00:00")

    assert client.get("/api/v0/rankings/CHESS/GLOBAL").json() == []


def test_latest_rankings_rejects_unknown_sport(client):
    assert client.get("/api/v0/rankings/QUIDDITCH/GLOBAL").status_code == 422
    assert client.get("/api/v0/rankings/FOOTBALL/GLOBAL?limit=0").status_code == 422


def test_history_endpoints_filter_by_category(client, session_maker):
    _seed(
        session_maker,
        Player(id="p1", name="P1", sport_type="TENNIS", rating=1100.0),
        Player(id="p2", name="P2", sport_type="TENNIS", rating=1000.0),
        Team(id="t1", name="T1", sport_type="TENNIS"),
    )
    _rank(session_maker, "TENNIS", "PLAYER", datetime(2024, 1, 1, 2, tzinfo=timezone.utc))
    _rank(session_maker, "TENNIS", "TEAM", datetime(2024, 1, 1, 2, tzinfo=timezone.utc))
    _rank(session_maker, "TENNIS", "PLAYER", datetime(2024, 1, 2, 2, tzinfo=timezone.utc))

    history = client.get("/api/v0/rankings/player/p1/history").json()
    assert [(h["rank"], h["previousRank"], h["rankChange"]) for h in history] == [
        (1, None, None),
        (1, 1, 0),
    ]
    assert len(client.get("/api/v0/rankings/team/t1/history").json()) == 1
    assert client.get("/api/v0/rankings/team/p1/history").json() == []


def test_rankings_between_endpoint(client, session_maker):
    _seed(session_maker, Player(id="p1", name="P1", sport_type="GOLF"))
    _rank(session_maker, "GOLF", "PLAYER", datetime(2024, 1, 1, 2, tzinfo=timezone.utc))
    _rank(session_maker, "GOLF", "PLAYER", datetime(2024, 1, 5, 2, tzinfo=timezone.utc))

    resp = client.get(
        "/api/v0/rankings/GOLF/GLOBAL/between",
        params={"start": "2024-01-01T00:00:00Z", "end": "2024-01-02T00:00:00Z"},
    )
    assert resp.status_code == 200
    assert len(resp.json()) == 1

    resp = client.get(
        "/api/v0/rankings/GOLF/GLOBAL/between",
        params={"start": "2024-01-05T00:00:00Z", "end": "2024-01-01T00:00:00Z"},
    )
    assert resp.status_code == 400
    assert resp.headers["content-type"].startswith("application/problem+json")
    assert resp.json()["code"] == "invalid_date_range"


def test_calculate_requires_admin_token(client, monkeypatch):
    assert client.post("/api/v0/rankings/calculate/FOOTBALL").status_code == 403
    resp = client.post(
        "/api/v0/rankings/calculate/FOOTBALL", headers={"X-Admin-Token": "wrong"}
    )
    assert resp.status_code == 403
    assert resp.json()["code"] == "admin_forbidden"

    monkeypatch.setattr(config, "ADMIN_TOKEN", None)
    assert client.post("/api/v0/rankings/calculate/FOOTBALL", headers=ADMIN).status_code == 403


def test_calculate_sport_reports_each_category(client, session_maker):
    _seed(
        session_maker,
        Player(id="p1", name="P1", sport_type="HOCKEY", rating=1300.0),
        Player(id="p2", name="P2", sport_type="HOCKEY", rating=1000.0),
        Team(id="t1", name="T1", sport_type="HOCKEY"),
    )

    resp = client.post("/api/v0/rankings/calculate/HOCKEY", headers=ADMIN)
    assert resp.status_code == 200
    body = resp.json()
    assert body["sportType"] == "HOCKEY"
    results = {r["category"]: r for r in body["results"]}
    assert results["PLAYER"]["status"] == "succeeded"
    assert results["PLAYER"]["count"] == 2
    assert results["TEAM"]["count"] == 1

    latest = client.get("/api/v0/rankings/HOCKEY/GLOBAL", params={"category": "PLAYER"})
    assert [r["entityId"] for r in latest.json()] == ["p1", "p2"]

    # Admin runs do not replace the daily cycle report.
    report = client.get("/api/v0/rankings/scheduler/last-report", headers=ADMIN)
    assert report.status_code == 200
    assert report.json() is None


def test_calculate_single_category(client, session_maker):
    _seed(session_maker, Team(id="t1", name="T1", sport_type="BASEBALL"))

    resp = client.post("/api/v0/rankings/calculate/teams/BASEBALL", headers=ADMIN)
    assert resp.status_code == 200
    assert resp.json()["count"] == 1
    assert resp.json()["category"] == "TEAM"

    resp = client.post("/api/v0/rankings/calculate/players/BASEBALL", headers=ADMIN)
    assert resp.status_code == 200
    assert resp.json() == {
        "sportType": "BASEBALL",
        "category": "PLAYER",
        "count": 0,
        "rankingDate": None,
    }


def test_calculate_conflicts_while_partition_in_flight(client):
    partition_locks._in_flight.add(("CHESS", "PLAYER"))
    resp = client.post("/api/v0/rankings/calculate/players/CHESS", headers=ADMIN)
    assert resp.status_code == 409
    assert resp.json()["code"] == "concurrency_conflict"

    resp = client.post("/api/v0/rankings/calculate/CHESS", headers=ADMIN)
    assert resp.status_code == 200
    statuses = {r["category"]: r["status"] for r in resp.json()["results"]}
    assert statuses == {"PLAYER": "skipped", "TEAM": "succeeded"}


def test_last_report_is_null_before_first_cycle(client):
    resp = client.get("/api/v0/rankings/scheduler/last-report", headers=ADMIN)
    assert resp.status_code == 200
    assert resp.json() is None
    assert scheduler_module._scheduler is not None


def test_match_result_endpoint(client, session_maker):
    _seed(
        session_maker,
        Player(id="A", name="A", sport_type="FOOTBALL", rating=1200.0),
        Player(id="B", name="B", sport_type="FOOTBALL", rating=1000.0),
    )
    payload = {"winnerId": "A", "loserId": "B", "sportType": "FOOTBALL", "matchId": "m-1"}

    resp = client.post("/api/v0/ratings/match-result", json=payload, headers=ADMIN)
    assert resp.status_code == 200
    body = resp.json()
    assert body["winnerDelta"] == pytest.approx(7.688, abs=1e-3)
    assert body["winnerDelta"] + body["loserDelta"] == pytest.approx(0.0)

    retry = client.post("/api/v0/ratings/match-result", json=payload, headers=ADMIN)
    assert retry.json() == body


def test_match_result_errors(client, session_maker):
    _seed(session_maker, Player(id="A", name="A", sport_type="FOOTBALL"))
    url = "/api/v0/ratings/match-result"

    same = {"winnerId": "A", "loserId": "A", "sportType": "FOOTBALL"}
    assert client.post(url, json=same, headers=ADMIN).status_code == 422

    missing = {"winnerId": "A", "loserId": "ghost", "sportType": "FOOTBALL"}
    resp = client.post(url, json=missing, headers=ADMIN)
    assert resp.status_code == 404
    assert resp.json()["code"] == "entity_not_found"

    wrong_sport = {"winnerId": "A", "loserId": "ghost", "sportType": "CHESS"}
    _seed(session_maker, Player(id="C", name="C", sport_type="CHESS"))
    wrong_sport["loserId"] = "C"
    resp = client.post(url, json=wrong_sport, headers=ADMIN)
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_match_result"

    assert client.post(url, json=missing).status_code == 403


def test_match_result_rejects_non_string_ids(client):
    payload = {"winnerId": 5, "loserId": "B", "sportType": "FOOTBALL"}
    resp = client.post("/api/v0/ratings/match-result", json=payload, headers=ADMIN)
    assert resp.status_code == 422
