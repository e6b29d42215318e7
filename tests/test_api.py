"""Tests for the HTTP API."""
import pytest

from hgw.sim.world_loop import world_loop


# ── Helpers ──────────────────────────────────────────────────────────────────

async def _create_world(client, **overrides) -> dict:
    body = {"name": "api", "seed": 5, "hacking_level": 150, "port_openers": 2, "purchased": 2,
            "purchased_ram": 128}
    body.update(overrides)
    resp = await client.post("/api/worlds", json=body)
    assert resp.status_code == 200
    return resp.json()


# ── Worlds ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_root(client):
    resp = await client.get("/")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_create_and_get_world(client):
    world = await _create_world(client)
    assert world["hacking_level"] == 150
    assert world["now_ms"] == 0.0

    resp = await client.get(f"/api/worlds/{world['id']}")
    assert resp.status_code == 200
    assert resp.json()["id"] == world["id"]

    resp = await client.get("/api/worlds")
    assert [w["id"] for w in resp.json()] == [world["id"]]


@pytest.mark.asyncio
async def test_unknown_world(client):
    assert (await client.get("/api/worlds/nope")).status_code == 404
    assert (await client.get("/api/worlds/nope/servers")).status_code == 404
    assert (await client.get("/api/worlds/nope/batchers")).status_code == 404
    resp = await client.post("/api/worlds/nope/batchers", json={"target": "n00dles"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_servers_and_purchase(client):
    world = await _create_world(client)
    resp = await client.get(f"/api/worlds/{world['id']}/servers")
    hostnames = [s["hostname"] for s in resp.json()]
    assert hostnames[0] == "home"
    assert {"n00dles", "pserv-0", "pserv-1"} <= set(hostnames)

    resp = await client.post(f"/api/worlds/{world['id']}/servers/purchase", json={"ram": 64})
    assert resp.status_code == 200
    assert resp.json()["hostname"] == "pserv-2"
    assert resp.json()["max_ram"] == 64

    resp = await client.post(
        f"/api/worlds/{world['id']}/servers/purchase", json={"hostname": "pserv-0"}
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_advance_and_speed(client):
    world = await _create_world(client)
    resp = await client.post(f"/api/worlds/{world['id']}/advance", json={"ms": 1500})
    assert resp.json()["now_ms"] == 1500

    resp = await client.post(f"/api/worlds/{world['id']}/speed", json={"speed": 0})
    assert resp.status_code == 200
    assert world_loop.speed_multiplier.pop(world["id"]) == 0


@pytest.mark.asyncio
async def test_nuke_and_candidates(client):
    world = await _create_world(client, port_openers=0)
    resp = await client.post(f"/api/worlds/{world['id']}/nuke")
    rooted = resp.json()["rooted"]
    assert "n00dles" in rooted
    assert "neo-net" not in rooted

    resp = await client.get(f"/api/worlds/{world['id']}/candidates")
    candidates = resp.json()
    names = [c["hostname"] for c in candidates]
    assert "neo-net" not in names
    assert "CSEC" not in names
    assert not any(n.startswith("pserv") for n in names)
    weights = [c["weight"] for c in candidates]
    assert weights == sorted(weights, reverse=True)


# ── Batchers ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_start_batcher_rejects_bad_input(client):
    world = await _create_world(client)
    url = f"/api/worlds/{world['id']}/batchers"
    for body in (
        {"target": "home"},
        {"target": "CSEC"},
        {"target": "n00dles", "variant": "shotgun"},
        {"target": "n00dles", "strategy": "hw"},
        {"target": "n00dles", "pool": " , "},
    ):
        resp = await client.post(url, json=body)
        assert resp.status_code == 400, body
    assert (await client.get(url)).json() == []
    assert (await client.delete(f"{url}/n00dles")).status_code == 404


@pytest.mark.asyncio
async def test_batcher_lifecycle(live_client):
    world = await _create_world(live_client)
    url = f"/api/worlds/{world['id']}/batchers"

    resp = await live_client.post(url, json={"target": "n00dles", "pool": "dedicated"})
    assert resp.status_code == 200
    status = resp.json()
    assert status["target"] == "n00dles"
    assert status["variant"] == "proto"
    assert status["running"] is True

    # A second batcher against the same target is refused.
    resp = await live_client.post(url, json={"target": "n00dles"})
    assert resp.status_code == 400

    resp = await live_client.get(url)
    assert [b["target"] for b in resp.json()] == ["n00dles"]

    resp = await live_client.delete(f"{url}/n00dles")
    assert resp.json()["status"] == "stopped"
    assert (await live_client.get(url)).json() == []
