import asyncio
import threading
import unittest
from datetime import timedelta
from unittest import mock

from roast_studio.core.utils import utcnow
from roast_studio.models.roast_session import ARCHIVED, LIVE, LOCKED, OPEN
from roast_studio.services.completion_service import RoundCompletionService
from roast_studio.services.lifecycle_service import LifecycleService
from roast_studio.services.round_store import RoundStore
from tests.helpers import TempDatabase, add_personas, make_live, open_session


class ControllerTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.database = TempDatabase()
        self.db = self.database.session()
        self.store = RoundStore(self.db)
        self.controller = LifecycleService(self.db)

    def tearDown(self):
        self.db.close()
        self.database.dispose()

    async def test_tick_creates_first_session(self):
        add_personas(self.db, "Carol", "alice", "Bob")
        t0 = utcnow()
        result = await self.controller.tick(now=t0)

        self.assertEqual(result.sessions_created, 1)
        active = self.store.active_sessions()
        self.assertEqual(len(active), 1)
        self.assertEqual(active[0].persona_name, "alice")
        self.assertEqual(active[0].lock_time, t0 + timedelta(seconds=120))

        state = self.store.get_global_state()
        self.assertEqual(state.round_state, "SUBMITTING")
        self.assertEqual(state.session_id, active[0].id)

    async def test_tick_without_personas_waits(self):
        result = await self.controller.tick()
        self.assertEqual(result.sessions_created, 0)
        self.assertEqual(result.errors, [])
        self.assertEqual(self.store.get_global_state().round_state, "WAITING")

    async def test_round_walks_open_locked_live(self):
        add_personas(self.db, "Alice")
        t0 = utcnow()
        await self.controller.tick(now=t0)
        session = self.store.active_sessions()[0]
        self.store.submit_message(session.id, transcript="submitted at t0+30")

        result = await self.controller.tick(now=t0 + timedelta(seconds=60))
        self.assertFalse(result.changed)

        result = await self.controller.tick(now=t0 + timedelta(seconds=125))
        self.assertEqual(result.open_to_locked, 1)
        self.assertEqual(self.store.get_session(session.id).status, LOCKED)
        self.assertIsNone(self.store.submit_message(session.id, transcript="late"))

        live_start = t0 + timedelta(seconds=136)
        result = await self.controller.tick(now=live_start)
        self.assertEqual(result.locked_to_live, 1)
        self.assertEqual(self.store.get_session(session.id).status, LIVE)

        state = self.store.get_global_state()
        self.assertEqual(state.round_state, "LIVE")
        self.assertEqual(state.session_id, session.id)
        self.assertEqual(state.live_start_time, live_start)
        self.assertEqual(state.total_roasts, 1)
        self.assertEqual(state.current_roast_index, 0)

    async def test_locked_waits_for_grace(self):
        add_personas(self.db, "Alice")
        t0 = utcnow()
        await self.controller.tick(now=t0)
        await self.controller.tick(now=t0 + timedelta(seconds=121))
        result = await self.controller.tick(now=t0 + timedelta(seconds=125))
        self.assertEqual(result.locked_to_live, 0)
        self.assertEqual(self.store.active_sessions()[0].status, LOCKED)

    async def test_repeated_ticks_are_idempotent(self):
        add_personas(self.db, "Alice")
        t0 = utcnow()
        await self.controller.tick(now=t0)
        await self.controller.tick(now=t0 + timedelta(seconds=125))
        await self.controller.tick(now=t0 + timedelta(seconds=136))
        version = self.store.get_global_state().version

        result = await self.controller.tick(now=t0 + timedelta(seconds=137))
        self.assertFalse(result.changed)
        self.assertEqual(self.store.get_global_state().version, version)
        self.assertEqual(len(self.store.list_sessions()), 1)

    async def test_stale_live_session_is_archived(self):
        persona, = add_personas(self.db, "Alice")
        now = utcnow()
        session = open_session(self.db, persona, now - timedelta(minutes=8))
        make_live(self.db, session, now - timedelta(minutes=6))

        result = await self.controller.tick(now=now)
        self.assertEqual(result.archived_stale, 1)
        self.assertEqual(self.store.get_session(session.id).status, ARCHIVED)

        state = self.store.get_global_state()
        self.assertEqual(state.round_state, "WAITING")
        self.assertIsNone(state.session_id)

    async def test_live_session_with_unused_roasts_is_kept(self):
        persona, = add_personas(self.db, "Alice")
        now = utcnow()
        session = open_session(self.db, persona, now - timedelta(minutes=8))
        self.store.submit_message(session.id, transcript="still queued")
        make_live(self.db, session, now - timedelta(minutes=6))

        result = await self.controller.tick(now=now)
        self.assertEqual(result.archived_stale, 0)
        self.assertEqual(self.store.get_session(session.id).status, LIVE)

    async def test_live_session_exactly_at_cutoff_is_kept(self):
        persona, = add_personas(self.db, "Alice")
        now = utcnow()
        session = open_session(self.db, persona, now - timedelta(seconds=420))
        make_live(self.db, session, now - timedelta(seconds=300))

        result = await self.controller.tick(now=now)
        self.assertEqual(result.archived_stale, 0)

    async def test_failing_step_does_not_stop_others(self):
        add_personas(self.db, "Alice")
        t0 = utcnow()
        await self.controller.tick(now=t0)

        with mock.patch.object(self.controller, "_lock_expired_open", side_effect=RuntimeError("boom")):
            result = await self.controller.tick(now=t0 + timedelta(seconds=125))
        self.assertEqual(len(result.errors), 1)
        self.assertIn("lock_expired_open", result.errors[0])

        result = await self.controller.tick(now=t0 + timedelta(seconds=125))
        self.assertEqual(result.open_to_locked, 1)


class LiveRoundMixin:
    """One LIVE round for Alice with a single queued roast"""

    def setUp(self):
        self.database = TempDatabase()
        self.db = self.database.session()
        self.store = RoundStore(self.db)
        self.personas = add_personas(self.db, "Alice", "Bob", "Carol")
        self.now = utcnow()
        self.session = open_session(self.db, self.personas[0], self.now - timedelta(minutes=3))
        self.message = self.store.submit_message(self.session.id, transcript="roast")
        make_live(self.db, self.session, self.now - timedelta(seconds=30))

    def tearDown(self):
        self.db.close()
        self.database.dispose()


class CompletionTests(LiveRoundMixin, unittest.IsolatedAsyncioTestCase):
    async def test_completion_archives_and_creates_successor(self):
        result = await RoundCompletionService(self.db).complete(self.session.id)

        self.assertTrue(result.success)
        self.assertEqual(result.archived_session_id, self.session.id)
        self.assertIsNotNone(result.created_session_id)
        self.assertEqual(self.store.get_session(self.session.id).status, ARCHIVED)
        self.assertTrue(self.store.get_message(self.message.id).used)

        successor = self.store.get_session(result.created_session_id)
        self.assertEqual(successor.status, OPEN)
        self.assertEqual(successor.persona_name, "Bob")

        state = self.store.get_global_state()
        self.assertEqual(state.round_state, "SUBMITTING")
        self.assertEqual(state.session_id, successor.id)

    async def test_completion_is_idempotent(self):
        service = RoundCompletionService(self.db)
        first = await service.complete(self.session.id)
        second = await service.complete(self.session.id)

        self.assertTrue(second.success)
        self.assertIsNone(second.created_session_id)
        active = self.store.active_sessions()
        self.assertEqual([s.id for s in active], [first.created_session_id])
        self.assertEqual(self.store.get_global_state().session_id, first.created_session_id)

    async def test_completing_an_open_round_keeps_its_submissions(self):
        persona = self.personas[1]
        self.store.transition(self.session.id, LIVE, ARCHIVED)
        self.store.write_global_state("WAITING", None)
        session = open_session(self.db, persona, self.now)
        message = self.store.submit_message(session.id, transcript="hi")

        result = await RoundCompletionService(self.db).complete(session.id)

        self.assertTrue(result.success)
        self.assertIsNone(result.created_session_id)
        self.assertEqual(self.store.get_session(session.id).status, OPEN)
        self.assertFalse(self.store.get_message(message.id).used)

    async def test_completion_of_unknown_session(self):
        self.assertIsNone(await RoundCompletionService(self.db).complete("missing"))

    async def test_rotation_skips_recent_subjects(self):
        service = RoundCompletionService(self.db)
        subjects = ["Alice"]
        session_id = self.session.id
        for _ in range(2):
            result = await service.complete(session_id)
            successor = self.store.get_session(result.created_session_id)
            subjects.append(successor.persona_name)
            session_id = successor.id
            self.store.transition(session_id, OPEN, LOCKED)
            self.store.transition(session_id, LOCKED, LIVE)
        self.assertEqual(subjects, ["Alice", "Bob", "Carol"])


class ConcurrentCompletionTests(LiveRoundMixin, unittest.TestCase):
    def test_concurrent_completion_creates_one_successor(self):
        results = []
        errors = []
        barrier = threading.Barrier(2)

        def worker():
            db = self.database.session()
            try:
                barrier.wait()
                results.append(asyncio.run(RoundCompletionService(db).complete(self.session.id)))
            except Exception as e:
                errors.append(e)
            finally:
                db.close()

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        self.assertEqual(errors, [])
        self.assertEqual(len(results), 2)
        self.assertTrue(all(r.success for r in results))

        active = self.store.active_sessions()
        self.assertEqual(len(active), 1)
        self.assertEqual(active[0].status, OPEN)
        self.assertEqual(len(self.store.list_sessions()), 2)
        self.assertEqual(self.store.get_global_state().session_id, active[0].id)


if __name__ == "__main__":
    unittest.main()
