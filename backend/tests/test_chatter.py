import asyncio
import random
import unittest

from roast_studio.client.chatter import COUNTDOWN_ANNOUNCEMENTS, IDLE_LINES, HostChatter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class ChatterSelectionTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.chatter = HostChatter(self._speak, rng=random.Random(7), monotonic=self.clock)

    async def _speak(self, host, text):
        pass

    def test_countdown_announcements_fire_once(self):
        expected = {threshold: (host, text) for threshold, host, text in COUNTDOWN_ANNOUNCEMENTS}
        self.assertEqual(self.chatter.next_line(30.6), expected[30])
        self.assertIsNone(self.chatter.next_line(29.9))
        self.assertEqual(self.chatter.next_line(10.2), expected[10])
        self.assertEqual(self.chatter.next_line(5.0), expected[5])
        self.assertEqual(self.chatter.next_line(0.4), expected[0])
        self.assertIsNone(self.chatter.next_line(-0.5))

    def test_announcement_window_is_two_seconds(self):
        self.assertIsNone(self.chatter.next_line(32.5))
        self.assertEqual(self.chatter.next_line(29.1)[1], "Thirty seconds! Get ready to roast!")

    def test_missed_window_is_not_announced_late(self):
        self.assertIsNone(self.chatter.next_line(27.5))

    def test_idle_lines_only_with_time_to_spare(self):
        self.assertIsNone(self.chatter.next_line(35.9))
        host, text = self.chatter.next_line(36.0)
        self.assertIn(text, IDLE_LINES[host])

    def test_idle_lines_are_spaced(self):
        self.assertIsNotNone(self.chatter.next_line(100))
        self.clock.now += 5
        self.assertIsNone(self.chatter.next_line(95))
        self.clock.now += 7
        self.assertIsNotNone(self.chatter.next_line(88))

    def test_quiet_while_speaking(self):
        self.chatter.is_speaking = True
        self.assertIsNone(self.chatter.next_line(30.5))
        self.chatter.is_speaking = False
        self.assertIsNotNone(self.chatter.next_line(30.5))

    def test_reset_rearms_announcements(self):
        self.chatter.next_line(10.5)
        self.chatter.reset()
        self.assertIsNotNone(self.chatter.next_line(10.5))


class ChatterSpeakingTests(unittest.IsolatedAsyncioTestCase):
    async def test_on_tick_speaks_and_cools_down(self):
        clock = FakeClock()
        spoken = []

        async def speak(host, text):
            spoken.append((host, text))

        chatter = HostChatter(speak, monotonic=clock)
        line = await chatter.on_tick(10.0)
        self.assertEqual(spoken, [line])
        self.assertIsNone(await chatter.on_tick(5.0))

        clock.now += 1
        self.assertIsNotNone(await chatter.on_tick(5.0))
        self.assertEqual(len(spoken), 2)

    async def test_failed_line_is_not_fatal(self):
        async def speak(host, text):
            raise RuntimeError("speaker unplugged")

        chatter = HostChatter(speak)
        self.assertIsNotNone(await chatter.on_tick(30.0))
        self.assertFalse(chatter.is_speaking)

    async def test_run_until_stopped(self):
        spoken = []

        async def speak(host, text):
            spoken.append(text)

        stop = asyncio.Event()
        task = asyncio.create_task(HostChatter(speak).run(lambda: 100.0, stop, tick=0.01))
        await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(task, timeout=1)
        self.assertEqual(len(spoken), 1)


if __name__ == "__main__":
    unittest.main()
