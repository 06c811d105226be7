from __future__ import annotations

import asyncio
import json

from moverconnect.api.live import snapshot_events
from moverconnect.api.marketplace import repo


def _data(frame: str):
    line = next(l for l in frame.splitlines() if l.startswith("data: "))
    return json.loads(line[len("data: "):])


def test_stream_pushes_full_ordered_thread_and_unsubscribes(fake_db):
    fake_db.seed("bookings/b1", {"client_id": "c1", "mover_id": "m1", "status": "accepted"})
    fake_db.seed("bookings/b1/messages/x2", {"message": "second", "sender": "client", "timestamp": 2.0})
    query = repo.messages_query("b1")

    def render(snaps):
        return [m.message for m in repo.messages_from_snapshots("b1", snaps)]

    async def run():
        events = snapshot_events(query, render, heartbeat_s=5)
        first = await events.__anext__()
        fake_db.seed("bookings/b1/messages/x3", {"message": "third", "sender": "mover", "timestamp": 3.0})
        query.document("x1").set({"message": "first", "sender": "mover", "timestamp": 1.0})
        second = await events.__anext__()
        await events.aclose()
        return first, second

    first, second = asyncio.run(run())
    assert _data(first) == ["second"]
    assert _data(second) == ["first", "second", "third"]
    assert fake_db.watches == []


def test_stream_sends_heartbeat_when_idle(fake_db):
    query = fake_db.collection("quotes")

    async def run():
        events = snapshot_events(query, lambda snaps: len(snaps), heartbeat_s=0.01)
        frames = [await events.__anext__(), await events.__anext__()]
        await events.aclose()
        return frames

    initial, ping = asyncio.run(run())
    assert _data(initial) == 0
    assert ping == ": ping\n\n"
    assert fake_db.watches == []


def test_stream_reports_render_failure_and_unsubscribes(fake_db):
    query = fake_db.collection("quotes")

    def bad_render(snaps):
        raise RuntimeError("boom")

    async def run():
        return [frame async for frame in snapshot_events(query, bad_render, heartbeat_s=5)]

    frames = asyncio.run(run())
    assert len(frames) == 1
    assert frames[0].startswith("event: error")
    assert fake_db.watches == []


def test_mover_stream_picks_up_new_ratings_on_next_mover_change(fake_db):
    from moverconnect.api import directory
    from moverconnect.api.marketplace.service import attach_ratings

    fake_db.seed("users/m1/movers/m1", {"email": "m1@example.com", "company_name": "Swift", "is_available": True})
    query = fake_db.collection_group(directory.MOVERS)

    def render(snaps):
        movers = attach_ratings(directory.mover_profiles_from_snapshots(snaps), repo.all_reviews())
        return [m.average_rating for m in movers]

    async def run():
        events = snapshot_events(query, render, heartbeat_s=0.01)
        first = await events.__anext__()
        fake_db.seed("reviews/b1_c1", {"mover_id": "m1", "client_id": "c1", "booking_id": "b1", "rating": 4})
        idle = await events.__anext__()
        directory.set_availability("m1", False)
        updated = await events.__anext__()
        await events.aclose()
        return first, idle, updated

    first, idle, updated = asyncio.run(run())
    assert _data(first) == [None]
    assert idle == ": ping\n\n"
    assert _data(updated) == [4.0]
