import unittest
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent))

from config import ConfigurationError
from inhibition import build_areas


def members(areas_by_node_id):
    """Group node ids by the area they belong to, in area order."""
    groups = {}
    for node_id, area in areas_by_node_id.items():
        groups.setdefault(id(area), []).append(node_id)
    return sorted(sorted(group) for group in groups.values())


class TestBuildAreas(unittest.TestCase):

    def test_every_node_belongs_to_one_area(self):
        for size, row, square, expected in ((784, 28, 2, 196), (16, 4, 2, 4), (10, 5, 1, 10)):
            areas, areas_by_node_id = build_areas(size, row, square)
            self.assertEqual(len(areas), expected)
            self.assertEqual(sorted(areas_by_node_id), list(range(1, size + 1)))
            for area in areas_by_node_id.values():
                self.assertTrue(any(area is candidate for candidate in areas))

    def test_square_blocks(self):
        _, areas_by_node_id = build_areas(16, 4, 2)
        self.assertEqual(members(areas_by_node_id), [
            [1, 2, 5, 6],
            [3, 4, 7, 8],
            [9, 10, 13, 14],
            [11, 12, 15, 16],
        ])

    def test_blocks_stop_at_the_row_edge(self):
        areas, areas_by_node_id = build_areas(10, 5, 2)
        self.assertEqual(len(areas), 3)
        self.assertEqual(members(areas_by_node_id), [[1, 2, 6, 7], [3, 4, 8, 9], [5, 10]])

    def test_ids_above_size_are_dropped(self):
        areas, areas_by_node_id = build_areas(10, 4, 2)
        self.assertEqual(len(areas), 3)
        self.assertEqual(members(areas_by_node_id), [[1, 2, 5, 6], [3, 4, 7, 8], [9, 10]])

    def test_areas_start_empty(self):
        areas, _ = build_areas(16, 4, 2)
        self.assertTrue(all(area == {} for area in areas))

    def test_invalid_dimensions(self):
        for value in (0, -1, 1.5, True, None):
            with self.assertRaises(ConfigurationError):
                build_areas(value, 4, 2)
            with self.assertRaises(ConfigurationError):
                build_areas(16, value, 2)
            with self.assertRaises(ConfigurationError):
                build_areas(16, 4, value)


if __name__ == '__main__':
    unittest.main()
