"""Tests for the HTTP API."""

import httpx
import pytest

from autoscrape.main import create_app

from conftest import TPDB_ENDPOINT, scene_payload


@pytest.fixture
async def client(ctx):
    app = create_app(ctx)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestSessions:
    async def test_start_runs_session(self, client, surface):
        response = await client.post("/api/v1/sessions", json={"scene_id": "1"})
        assert response.status_code == 202
        assert response.json()["scene_id"] == "1"

        # Background tasks finish before the ASGI call returns
        session = (await client.get("/api/v1/sessions/1")).json()
        assert session["state"] == "completed"
        assert session["sources_used"] == ["stashdb", "theporndb"]
        assert surface.calls.count("save") == 1

    async def test_forced_providers(self, client, surface):
        await client.post("/api/v1/sessions", json={"scene_id": "1", "force_providers": ["theporndb"]})
        assert surface.scraped() == ["theporndb"]

    async def test_no_surface(self, client, ctx):
        ctx.surface = None
        response = await client.post("/api/v1/sessions", json={"scene_id": "1"})
        assert response.status_code == 503

    async def test_conflicts(self, client, ctx):
        ctx.automation.prepare("1")

        same = await client.post("/api/v1/sessions", json={"scene_id": "1"})
        other = await client.post("/api/v1/sessions", json={"scene_id": "2"})

        assert same.status_code == 409
        assert other.status_code == 409
        assert "busy" in other.json()["detail"]

    async def test_controls_need_active_session(self, client):
        assert (await client.get("/api/v1/sessions/9")).status_code == 404
        assert (await client.post("/api/v1/sessions/9/cancel")).status_code == 404
        assert (await client.post("/api/v1/sessions/9/skip")).status_code == 404

    async def test_cancel_and_skip_active_session(self, client, ctx):
        session = ctx.automation.prepare("1")

        assert (await client.post("/api/v1/sessions/1/skip")).status_code == 200
        assert session.token.skip_requested
        assert (await client.post("/api/v1/sessions/1/cancel")).status_code == 200
        assert session.cancelled

    async def test_decision_requires_pending_prompt(self, client, ctx):
        ctx.automation.prepare("1")
        response = await client.post("/api/v1/sessions/1/decision", json={"decision": "apply"})
        assert response.status_code == 409

        bad = await client.post("/api/v1/sessions/1/decision", json={"decision": "maybe"})
        assert bad.status_code == 422


class TestScenes:
    async def test_status(self, client, stash_api):
        stash_api.scenes["1"] = scene_payload("1", stash_ids=[TPDB_ENDPOINT])

        body = (await client.get("/api/v1/scenes/1/status")).json()

        sources = {s["provider"]: s for s in body["snapshot"]["sources"]}
        assert sources["theporndb"]["found"] is True
        assert sources["theporndb"]["confidence"] == 100
        assert sources["stashdb"]["found"] is False
        assert body["snapshot"]["percentage"] == 33
        assert body["status"] == "1/3 completed"
        assert body["last_automation"] is None


class TestHistory:
    async def test_history_after_run(self, client, ctx):
        await ctx.run_scene("1")

        entries = (await client.get("/api/v1/history")).json()
        assert entries[0]["recordId"] == "1"
        assert entries[0]["success"] is True

        stats = (await client.get("/api/v1/history/statistics")).json()
        assert stats["totalAutomations"] == 1
        assert stats["successRate"] == 100

        last = await client.get("/api/v1/history/scenes/1/last")
        assert last.status_code == 200
        assert (await client.get("/api/v1/history/scenes/2/last")).status_code == 404

        export = await client.get("/api/v1/history/export")
        assert "attachment" in export.headers["content-disposition"]
        assert export.json()["history"][0]["recordId"] == "1"

    async def test_import_and_clear(self, client):
        document = {"history": [
            {"recordId": "5", "timestamp": "2024-12-01T00:00:00Z", "success": True},
        ]}
        assert (await client.post("/api/v1/history/import", json=document)).json() == {"imported": 1}

        bad = await client.post("/api/v1/history/import", json={"history": []})
        assert bad.status_code == 400

        cleared = await client.delete("/api/v1/history", params={"older_than_days": 7})
        assert cleared.json() == {"removed": 1}


class TestQueueStatsConfig:
    async def test_queue(self, client, ctx):
        ctx.queue.enqueue("1", "Low confidence")

        entries = (await client.get("/api/v1/queue")).json()
        assert [e["scene_id"] for e in entries] == ["1"]
        assert (await client.get("/api/v1/queue/due")).json() == []
        assert (await client.delete("/api/v1/queue/1")).status_code == 204
        assert (await client.delete("/api/v1/queue/1")).status_code == 404

    async def test_source_stats(self, client, ctx):
        ctx.config_store.set("adaptive_routing", True)
        ctx.stats.record("stashdb", ok=False)

        stats = (await client.get("/api/v1/source-stats")).json()
        assert stats[0]["provider"] == "stashdb"
        assert stats[0]["ratio"] == 0.0

        order = (await client.get("/api/v1/source-stats/order")).json()
        assert order == {"adaptive": True, "order": ["theporndb", "stashdb"]}

        assert (await client.delete("/api/v1/source-stats")).json() == {"removed": 1}

    async def test_config(self, client):
        updated = await client.patch("/api/v1/config", json={"min_auto_apply_score": 75})
        assert updated.json()["min_auto_apply_score"] == 75

        bad = await client.patch("/api/v1/config", json={"auto_scrape_elsewhere": True})
        assert bad.status_code == 400

        reset = await client.delete("/api/v1/config")
        assert reset.json()["min_auto_apply_score"] == 60

    async def test_notifications(self, client, ctx):
        await ctx.run_scene("1")
        notes = (await client.get("/api/v1/notifications")).json()
        assert notes[0]["level"] == "success"
        assert notes[0]["scene_id"] == "1"
