"""
Question generation for multiplication rounds.
Builds multiple-choice questions and the per-round multiplicand pool.
"""
import logging
import random
from typing import List, Optional, Set

from .difficulty import MIN_TABLE, MAX_TABLE
from .models import Question

logger = logging.getLogger(__name__)

MIN_MULTIPLICAND = 1
MAX_MULTIPLICAND = 10
OPTION_COUNT = 4
MAX_PERTURBATION = 15
MAX_DISTRACTOR_ATTEMPTS = 1000


class MultiplicandPool:
    """Shuffled sequence of the factors 1..10, consumed one per question."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()
        self._values = list(range(MIN_MULTIPLICAND, MAX_MULTIPLICAND + 1))
        self._rng.shuffle(self._values)
        self._position = 0

    @property
    def values(self) -> List[int]:
        return list(self._values)

    @property
    def remaining(self) -> int:
        return len(self._values) - self._position

    def draw(self) -> int:
        """
        Take the next multiplicand from the pool.

        Returns:
            The next pooled value, or a random value in 1..10 once the pool is exhausted
        """
        if self._position < len(self._values):
            value = self._values[self._position]
            self._position += 1
            return value

        fallback = self._rng.randint(MIN_MULTIPLICAND, MAX_MULTIPLICAND)
        logger.warning(f"Multiplicand pool exhausted, using random fallback {fallback}")
        return fallback


class QuestionGenerator:
    """Generates questions with one correct option and three distractors."""

    def __init__(self, rng: Optional[random.Random] = None,
                 max_attempts: int = MAX_DISTRACTOR_ATTEMPTS):
        self._rng = rng or random.Random()
        self.max_attempts = max_attempts

    def new_pool(self) -> MultiplicandPool:
        return MultiplicandPool(self._rng)

    def generate(self, table: int, multiplicand: int) -> Question:
        """
        Generate a question for ``table × multiplicand``.

        Args:
            table: Multiplication table, 2..10
            multiplicand: Factor, 1..10

        Returns:
            Question with four distinct, shuffled options

        Raises:
            ValueError: If table or multiplicand is outside its domain
        """
        if not MIN_TABLE <= table <= MAX_TABLE:
            raise ValueError(f"Table must be between {MIN_TABLE} and {MAX_TABLE}, got {table}")
        if not MIN_MULTIPLICAND <= multiplicand <= MAX_MULTIPLICAND:
            raise ValueError(
                f"Multiplicand must be between {MIN_MULTIPLICAND} and {MAX_MULTIPLICAND}, got {multiplicand}"
            )

        correct_answer = table * multiplicand
        excluded = {table * (multiplicand + 1), table * (multiplicand - 1)}

        options = [correct_answer]
        used: Set[int] = {correct_answer}

        attempts = 0
        while len(options) < OPTION_COUNT and attempts < self.max_attempts:
            attempts += 1
            candidate = self._perturb(correct_answer)
            if candidate in used or candidate in excluded:
                continue
            options.append(candidate)
            used.add(candidate)

        if len(options) < OPTION_COUNT:
            logger.warning(
                f"Distractor search exhausted after {attempts} attempts for {table}x{multiplicand}, "
                f"using deterministic fallback"
            )
            candidate = correct_answer + 1
            while len(options) < OPTION_COUNT:
                if candidate not in used and candidate not in excluded:
                    options.append(candidate)
                    used.add(candidate)
                candidate += 1

        self._rng.shuffle(options)

        return Question(
            multiplier=table,
            multiplicand=multiplicand,
            correct_answer=correct_answer,
            options=options,
        )

    def _perturb(self, correct_answer: int) -> int:
        delta = self._rng.randint(1, MAX_PERTURBATION)
        if self._rng.random() > 0.5:
            return correct_answer + delta
        return max(1, correct_answer - delta)
