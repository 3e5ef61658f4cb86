"""
Unit tests for difficulty grouping.
"""
import unittest

from tablequiz.difficulty import (
    get_all_tables, get_difficulty_by_table, get_difficulty_name, get_difficulty_icon,
    get_tables_by_difficulty, is_valid_table
)


class TestDifficulty(unittest.TestCase):

    def test_levels(self):
        self.assertEqual(get_tables_by_difficulty("easy"), [2, 5, 10])
        self.assertEqual(get_tables_by_difficulty("medium"), [3, 4, 6])
        self.assertEqual(get_tables_by_difficulty("hard"), [7, 8, 9])

    def test_every_table_has_a_level(self):
        for table in get_all_tables():
            self.assertIn(get_difficulty_by_table(table), ("easy", "medium", "hard"))

    def test_names_and_icons(self):
        self.assertEqual(get_difficulty_name(5), "Easy")
        self.assertEqual(get_difficulty_name(7), "Hard")
        self.assertEqual(get_difficulty_icon(4), get_difficulty_icon(6))

    def test_unknown_table_defaults_to_medium(self):
        self.assertEqual(get_difficulty_by_table(42), "medium")

    def test_unknown_difficulty_raises(self):
        with self.assertRaises(ValueError):
            get_tables_by_difficulty("all")

    def test_is_valid_table(self):
        self.assertEqual(get_all_tables(), list(range(2, 11)))
        self.assertTrue(all(is_valid_table(table) for table in range(2, 11)))
        for value in (1, 11, 7.0, "7", None, True):
            self.assertFalse(is_valid_table(value))


if __name__ == '__main__':
    unittest.main()
