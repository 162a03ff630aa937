import asyncio
import unittest
from datetime import datetime, timedelta
from unittest import mock

import httpx

from roast_studio.client.api_client import StudioClient
from roast_studio.client.audio import ClockAudioPlayer
from roast_studio.client.runtime import ViewerRuntime
from roast_studio.client.scheduler import CANNED_RESPONSES, PlaybackScheduler, PlaybackTiming, host_for_index
from roast_studio.core.utils import utcnow
from roast_studio.services.lifecycle_service import LifecycleService
from roast_studio.services.round_store import RoundStore
from tests.helpers import (
    FAST_TIMING,
    FakeGenerator,
    FakeSynthesizer,
    TempDatabase,
    add_personas,
    build_app,
    studio_client,
)


class LiveShowTestCase(unittest.IsolatedAsyncioTestCase):
    """A round for Alice that went live a minute ago with the given roasts"""

    roasts = ("Your code review is a rubber stamp", "You deploy on Fridays")
    generator_fails = False

    async def asyncSetUp(self):
        self.database = TempDatabase()
        self.db = self.database.session()
        self.store = RoundStore(self.db)
        add_personas(self.db, "Alice", "Bob", "Carol")

        self.generator = self.make_generator()
        self.synthesizer = FakeSynthesizer()
        self.app = build_app(self.database, generator=self.generator, synthesizer=self.synthesizer)
        self.client, self.http = studio_client(self.app)

        controller = LifecycleService(self.db)
        t0 = utcnow() - timedelta(seconds=200)
        await controller.tick(now=t0)
        self.session_id = self.store.active_sessions()[0].id
        for text in self.roasts:
            await self.client.submit_message(self.session_id, transcript=text)
        await controller.tick(now=t0 + timedelta(seconds=125))
        await controller.tick(now=t0 + timedelta(seconds=136))
        self.assertEqual(self.store.get_global_state().round_state, "LIVE")

        self.player = ClockAudioPlayer(time_scale=0.0)

    async def asyncTearDown(self):
        await self.http.aclose()
        self.db.close()
        self.database.dispose()

    def make_generator(self):
        return FakeGenerator(fail=self.generator_fails)

    def scheduler(self, host_id="host-1"):
        return PlaybackScheduler(self.client, self.session_id, host_id, self.player, timing=FAST_TIMING)


class SchedulerTests(LiveShowTestCase):
    async def test_plays_every_roast_then_completes(self):
        completion = await asyncio.wait_for(self.scheduler().run(), timeout=10)

        exchanges = await self.client.list_exchanges(self.session_id)
        self.assertEqual([e["sequence_number"] for e in exchanges], [1, 2])
        self.assertEqual([e["host_type"] for e in exchanges], ["A", "B"])
        self.assertEqual([e["user_transcript"] for e in exchanges], list(self.roasts))
        self.assertTrue(exchanges[0]["host_response"].startswith("Host A on Alice"))
        self.assertTrue(all(e["host_audio_url"] for e in exchanges))

        messages = await self.client.list_messages(self.session_id)
        self.assertTrue(all(m["used"] for m in messages))

        self.assertEqual(completion["archivedSessionId"], self.session_id)
        successor = await self.client.get_session(completion["createdSessionId"])
        self.assertEqual(successor["persona_name"], "Bob")
        self.assertEqual(successor["status"], "OPEN")

        state = await self.client.get_round_state()
        self.assertEqual(state["round_state"], "SUBMITTING")
        self.assertEqual(state["session_id"], successor["id"])

        snapshot = await self.client.get_snapshot(self.session_id)
        self.assertEqual(snapshot["phase"], "idle")
        self.assertFalse(snapshot["is_playing"])
        self.assertEqual(snapshot["roast_number"], 2)

        # Narrated roast then host response, per roast
        self.assertEqual(len(self.player.played), 4)
        voices = [voice for _, voice in self.synthesizer.calls]
        self.assertEqual(voices.count("announcer"), 2)

        # Pre-generated responses are used, never requested twice
        self.assertEqual(sorted(host for _, _, host in self.generator.calls), ["A", "B"])

    async def test_takeover_skips_consumed_roasts(self):
        first = (await self.client.list_messages(self.session_id))[0]
        self.assertTrue(await self.client.mark_used(first["id"]))

        await asyncio.wait_for(self.scheduler().run(), timeout=10)

        exchanges = await self.client.list_exchanges(self.session_id)
        self.assertEqual(len(exchanges), 1)
        self.assertEqual(exchanges[0]["host_type"], host_for_index(1))
        self.assertEqual(exchanges[0]["user_transcript"], self.roasts[1])

    async def test_follower_cannot_host(self):
        await self.client.claim_host(self.session_id, "someone-else")
        scheduler = self.scheduler()

        completion = await asyncio.wait_for(scheduler.run(), timeout=10)
        self.assertIsNone(completion)
        self.assertTrue(scheduler.lease_lost)
        self.assertEqual(await self.client.list_exchanges(self.session_id), [])


class CannedFallbackTests(LiveShowTestCase):
    roasts = ("You still use tabs",)
    generator_fails = True

    async def test_generation_failure_uses_canned_line(self):
        completion = await asyncio.wait_for(self.scheduler().run(), timeout=10)

        exchanges = await self.client.list_exchanges(self.session_id)
        self.assertEqual(len(exchanges), 1)
        self.assertEqual(exchanges[0]["host_response"], CANNED_RESPONSES["A"])
        self.assertEqual(completion["archivedSessionId"], self.session_id)


class TimeoutOnGenerate(httpx.AsyncBaseTransport):
    """In-process transport where the generation route always times out"""

    def __init__(self, app):
        self.inner = httpx.ASGITransport(app=app)

    async def handle_async_request(self, request):
        if request.url.path == "/api/studio/generate-roast":
            raise httpx.ReadTimeout("timed out", request=request)
        return await self.inner.handle_async_request(request)


class GenerationTimeoutTests(LiveShowTestCase):
    roasts = ("You still use tabs",)

    async def test_timeout_uses_canned_line(self):
        http = httpx.AsyncClient(transport=TimeoutOnGenerate(self.app), base_url="http://test")
        self.addAsyncCleanup(http.aclose)
        scheduler = PlaybackScheduler(
            StudioClient(client=http), self.session_id, "host-1", self.player, timing=FAST_TIMING
        )

        completion = await asyncio.wait_for(scheduler.run(), timeout=10)

        exchanges = await self.client.list_exchanges(self.session_id)
        self.assertEqual(len(exchanges), 1)
        self.assertEqual(exchanges[0]["host_response"], CANNED_RESPONSES["A"])
        messages = await self.client.list_messages(self.session_id)
        self.assertTrue(messages[0]["used"])
        self.assertEqual(self.generator.calls, [])
        self.assertEqual(completion["archivedSessionId"], self.session_id)


class SlowHostBGenerator(FakeGenerator):
    """Host B's lines take long enough to still be pending when their slot comes up"""

    async def generate(self, persona_name, user_roast, host_type):
        if host_type == "B":
            self.calls.append((persona_name, user_roast, host_type))
            await asyncio.sleep(0.5)
            return f"Host {host_type} on {persona_name}: {user_roast}"
        return await super().generate(persona_name, user_roast, host_type)


class PendingPregenTests(LiveShowTestCase):
    def make_generator(self):
        return SlowHostBGenerator()

    async def test_pending_response_is_awaited_not_requested_again(self):
        await asyncio.wait_for(self.scheduler().run(), timeout=10)

        self.assertEqual(sorted(host for _, _, host in self.generator.calls), ["A", "B"])
        exchanges = await self.client.list_exchanges(self.session_id)
        self.assertEqual(exchanges[1]["host_response"], f"Host B on Alice: {self.roasts[1]}")


class TickGateTests(unittest.IsolatedAsyncioTestCase):
    """on_tick against a hand-driven clock with 15 s slots"""

    def setUp(self):
        self.live_start = datetime(2026, 3, 1, 12, 0, 0)
        self.now = self.live_start
        timing = PlaybackTiming(seconds_per_item=15.0, tick_interval=0.01)
        self.scheduler = PlaybackScheduler(
            None, "session-1", "host-1", ClockAudioPlayer(time_scale=0.0), timing=timing, clock=lambda: self.now
        )
        self.scheduler.live_start = self.live_start
        self.scheduler.queue = [{"id": "m1", "transcript": "one"}, {"id": "m2", "transcript": "two"}]
        self.scheduler._process = self.process = mock.AsyncMock()
        self.scheduler._finish = self.finish = mock.AsyncMock()

    def item_done(self, index):
        self.scheduler.processed.add(index)
        self.scheduler.currently_processing = False

    async def test_first_item_starts_at_live_start(self):
        await self.scheduler.on_tick()
        self.process.assert_called_once_with(0)
        self.assertTrue(self.scheduler.currently_processing)
        await self.scheduler._current

    async def test_in_flight_item_blocks_the_next(self):
        await self.scheduler.on_tick()
        self.now = self.live_start + timedelta(seconds=30)
        await self.scheduler.on_tick()
        await self.scheduler.on_tick()
        self.process.assert_called_once_with(0)
        await self.scheduler._current

    async def test_item_waits_for_its_slot(self):
        await self.scheduler.on_tick()
        await self.scheduler._current
        self.item_done(0)

        self.now = self.live_start + timedelta(seconds=10)
        await self.scheduler.on_tick()
        self.assertEqual(self.process.call_count, 1)
        self.assertFalse(self.scheduler.currently_processing)

        self.now = self.live_start + timedelta(seconds=15)
        await self.scheduler.on_tick()
        self.assertEqual(self.process.call_args_list, [mock.call(0), mock.call(1)])
        await self.scheduler._current

    async def test_late_takeover_starts_overdue_item_at_once(self):
        self.item_done(0)
        self.now = self.live_start + timedelta(seconds=40)
        await self.scheduler.on_tick()
        self.process.assert_called_once_with(1)
        await self.scheduler._current

    async def test_finishes_when_queue_is_drained(self):
        self.item_done(0)
        self.item_done(1)
        await self.scheduler.on_tick()
        self.finish.assert_awaited_once()
        self.process.assert_not_called()


class NoRoastsTests(LiveShowTestCase):
    roasts = ()

    async def test_empty_round_gets_commentary_and_completes(self):
        completion = await asyncio.wait_for(self.scheduler().run(), timeout=10)

        self.assertEqual(await self.client.list_exchanges(self.session_id), [])
        spoken = [text for text, _ in self.synthesizer.calls]
        self.assertEqual(len(spoken), 2)
        self.assertTrue(all("Alice" in text for text in spoken))
        self.assertIsNotNone(completion["createdSessionId"])


class ViewerRuntimeTests(LiveShowTestCase):
    roasts = ()

    async def test_one_host_and_one_follower(self):
        host = ViewerRuntime(self.client, self.player, host_id="viewer-1", timing=FAST_TIMING, run_chatter=False)
        viewer = ViewerRuntime(
            self.client, ClockAudioPlayer(time_scale=0.0), host_id="viewer-2", timing=FAST_TIMING, run_chatter=False
        )

        await host.poll_once()
        await viewer.poll_once()
        self.assertEqual(host.role, "host")
        self.assertEqual(viewer.role, "follower")

        completion = await asyncio.wait_for(host._host_task, timeout=10)
        self.assertEqual(completion["archivedSessionId"], self.session_id)

        await viewer.poll_once()
        self.assertEqual(viewer.role, "waiting")
        self.assertIsNone(viewer.follower)
        self.assertEqual(viewer.session_id, completion["createdSessionId"])

        await host.poll_once()
        await host._detach()
        await viewer._detach()

    async def test_waiting_room_chatter(self):
        completion = await self.client.complete_round(self.session_id)
        runtime = ViewerRuntime(self.client, self.player, host_id="viewer-1", timing=FAST_TIMING)

        await runtime.poll_once()
        self.assertEqual(runtime.session_id, completion["createdSessionId"])
        self.assertIsNotNone(runtime._chatter_task)
        await asyncio.sleep(0.1)

        runtime.stop()
        await runtime._detach()
        self.assertIsNone(runtime._chatter_task)
        self.assertTrue(self.synthesizer.calls)
        self.assertIn(self.synthesizer.calls[0][1], ("A", "B"))


if __name__ == "__main__":
    unittest.main()
