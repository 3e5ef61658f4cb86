"""
Difficulty grouping for the multiplication tables.
"""
from typing import Dict, List


DIFFICULTY_LEVELS: Dict[str, Dict[str, object]] = {
    "easy": {"tables": [2, 5, 10], "name": "Easy", "icon": "🌱", "color": 0x2ecc71},
    "medium": {"tables": [3, 4, 6], "name": "Medium", "icon": "⚡", "color": 0xf1c40f},
    "hard": {"tables": [7, 8, 9], "name": "Hard", "icon": "🔥", "color": 0xe74c3c},
}

SCORE_CATEGORIES = ("all", "easy", "medium", "hard")

MIN_TABLE = 2
MAX_TABLE = 10


def get_difficulty_by_table(table: int) -> str:
    """Return the difficulty key for a table, defaulting to medium."""
    for key, level in DIFFICULTY_LEVELS.items():
        if table in level["tables"]:
            return key
    return "medium"


def get_difficulty_name(table: int) -> str:
    return DIFFICULTY_LEVELS[get_difficulty_by_table(table)]["name"]


def get_difficulty_icon(table: int) -> str:
    return DIFFICULTY_LEVELS[get_difficulty_by_table(table)]["icon"]


def get_table_color(table: int) -> int:
    return DIFFICULTY_LEVELS[get_difficulty_by_table(table)]["color"]


def get_all_tables() -> List[int]:
    return list(range(MIN_TABLE, MAX_TABLE + 1))


def get_tables_by_difficulty(difficulty: str) -> List[int]:
    """
    Get the tables belonging to a difficulty level.

    Raises:
        ValueError: If the difficulty is not easy, medium or hard
    """
    if difficulty not in DIFFICULTY_LEVELS:
        raise ValueError(f"Unknown difficulty: {difficulty}")
    return list(DIFFICULTY_LEVELS[difficulty]["tables"])


def is_valid_table(table: object) -> bool:
    return isinstance(table, int) and not isinstance(table, bool) and MIN_TABLE <= table <= MAX_TABLE
