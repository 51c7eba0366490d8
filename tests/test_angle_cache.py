import math
import unittest

from angle_cache import AngleCache, build_angle_cache


class TestAngleCache(unittest.TestCase):
    def test_entries_are_evenly_spaced(self):
        entries = build_angle_cache(4)
        self.assertEqual(len(entries), 4)
        self.assertEqual([e.angle for e in entries], [0.0, math.pi / 2, math.pi, 3 * math.pi / 2])
        for entry in entries:
            self.assertAlmostEqual(entry.sin, math.sin(entry.angle))
            self.assertAlmostEqual(entry.cos, math.cos(entry.angle))

    def test_axis_count_is_clamped(self):
        self.assertEqual(len(build_angle_cache(1)), 3)
        self.assertEqual(len(build_angle_cache(100)), 24)

    def test_rebuilds_only_on_change(self):
        cache = AngleCache()
        first = cache.get(6)
        self.assertIs(cache.get(6), first)
        self.assertEqual(cache.axis_count, 6)
        second = cache.get(8)
        self.assertIsNot(second, first)
        self.assertEqual(len(second), 8)


if __name__ == "__main__":
    unittest.main()
