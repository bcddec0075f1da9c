"""Deterministic question generation for the mental math trainer.

Everything in this module is a pure function of its arguments plus an injected
``random.Random``.  Given the same seed the same stream of questions comes out,
which is what the session engine and the tests rely on.

* ``Question`` is an immutable value: operands, operation and the answer that
  was derived once when the question was generated.
* ``generate_question`` picks an operation, samples operands from the range
  table for the requested difficulty and refuses to hand back an immediate
  repeat of the previous question.
* ``generate_hint`` turns a question into a short mental-math strategy.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import StrEnum

logger = logging.getLogger(__name__)

# Upper bound on anti-repeat retries; after that the repeat is accepted.
MAX_GENERATION_ATTEMPTS = 50


class Operation(StrEnum):
    ADDITION = "addition"
    SUBTRACTION = "subtraction"
    MULTIPLICATION = "multiplication"
    DIVISION = "division"
    SQUARE_ROOT = "square_root"
    CUBE_ROOT = "cube_root"
    PRIME = "prime"
    PERCENTAGE = "percentage"


class Difficulty(StrEnum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


SINGLE_OPERAND_OPERATIONS = frozenset({Operation.SQUARE_ROOT, Operation.CUBE_ROOT, Operation.PRIME})


@dataclass(frozen=True, slots=True)
class Question:
    operand1: int
    operand2: int | None
    operation: Operation
    answer: int | float

    @property
    def key(self) -> tuple[int, int | None, Operation]:
        """Identity used for the anti-repeat check."""
        return (self.operand1, self.operand2, self.operation)


# Inclusive (lo, hi) ranges per difficulty.
_DIVISION_QUOTIENT: dict[Difficulty, tuple[int, int]] = {
    Difficulty.BEGINNER: (2, 10),
    Difficulty.INTERMEDIATE: (2, 12),
    Difficulty.ADVANCED: (5, 20),
}
_DIVISION_DIVISOR: dict[Difficulty, tuple[int, int]] = {
    Difficulty.BEGINNER: (2, 5),
    Difficulty.INTERMEDIATE: (2, 10),
    Difficulty.ADVANCED: (2, 15),
}
_SQUARE_ROOT_BASE: dict[Difficulty, tuple[int, int]] = {
    Difficulty.BEGINNER: (1, 10),
    Difficulty.INTERMEDIATE: (4, 25),
    Difficulty.ADVANCED: (10, 40),
}
_CUBE_ROOT_BASE: dict[Difficulty, tuple[int, int]] = {
    Difficulty.BEGINNER: (1, 4),
    Difficulty.INTERMEDIATE: (2, 8),
    Difficulty.ADVANCED: (4, 12),
}
_PRIME_CANDIDATE: dict[Difficulty, tuple[int, int]] = {
    Difficulty.BEGINNER: (2, 25),
    Difficulty.INTERMEDIATE: (11, 70),
    Difficulty.ADVANCED: (30, 120),
}

# Percentage: (allowed percentages, (lo, hi) base range in tens).
_PERCENTAGE_TABLE: dict[Difficulty, tuple[tuple[int, ...], tuple[int, int]]] = {
    Difficulty.BEGINNER: ((10, 25, 50, 100), (1, 10)),
    Difficulty.INTERMEDIATE: ((5, 15, 20, 30, 40, 60, 75, 80, 90), (1, 20)),
    Difficulty.ADVANCED: (tuple(range(1, 100)), (10, 100)),
}


def is_prime(n: int) -> bool:
    """Trial division over the 6k +/- 1 wheel."""

    if n <= 1:
        return False
    if n <= 3:
        return True
    if n % 2 == 0 or n % 3 == 0:
        return False
    i = 5
    while i * i <= n:
        if n % i == 0 or n % (i + 2) == 0:
            return False
        i += 6
    return True


def _icbrt(n: int) -> int:
    root = int(round(n ** (1.0 / 3.0)))
    # Float cube roots can land one off for large n.
    while root**3 > n:
        root -= 1
    while (root + 1) ** 3 <= n:
        root += 1
    return root


def solve(operation: Operation, operand1: int, operand2: int | None = None) -> int | float:
    """Answer key: derive the expected answer from the operands alone."""

    if operation in SINGLE_OPERAND_OPERATIONS:
        if operation is Operation.SQUARE_ROOT:
            return math.isqrt(operand1)
        if operation is Operation.CUBE_ROOT:
            return _icbrt(operand1)
        return 1 if is_prime(operand1) else 0

    if operand2 is None:
        raise ValueError(f"{operation.value} needs a second operand")
    if operation is Operation.ADDITION:
        return operand1 + operand2
    if operation is Operation.SUBTRACTION:
        return operand1 - operand2
    if operation is Operation.MULTIPLICATION:
        return operand1 * operand2
    if operation is Operation.DIVISION:
        return operand1 // operand2
    return operand1 * operand2 / 100


def _randint(rng: random.Random, bounds: tuple[int, int]) -> int:
    return rng.randint(bounds[0], bounds[1])


def _generic_operands(difficulty: Difficulty, rng: random.Random) -> tuple[int, int]:
    if difficulty is Difficulty.INTERMEDIATE:
        # One two-digit operand and one single digit, avoiding 1.
        if rng.random() > 0.5:
            return rng.randint(10, 50), rng.randint(2, 9)
        return rng.randint(2, 9), rng.randint(10, 50)
    if difficulty is Difficulty.ADVANCED:
        return rng.randint(10, 99), rng.randint(10, 99)
    return rng.randint(1, 9), rng.randint(1, 9)


def _addition(difficulty: Difficulty, rng: random.Random) -> Question:
    a, b = _generic_operands(difficulty, rng)
    return Question(a, b, Operation.ADDITION, a + b)


def _subtraction(difficulty: Difficulty, rng: random.Random) -> Question:
    a, b = _generic_operands(difficulty, rng)
    if a < b:
        a, b = b, a
    return Question(a, b, Operation.SUBTRACTION, a - b)


def _multiplication(difficulty: Difficulty, rng: random.Random) -> Question:
    if difficulty is Difficulty.ADVANCED:
        a, b = rng.randint(10, 30), rng.randint(2, 12)
    elif difficulty is Difficulty.INTERMEDIATE:
        a, b = rng.randint(10, 50), rng.randint(2, 9)
        if rng.random() > 0.5:
            a, b = b, a
    else:
        a, b = rng.randint(1, 9), rng.randint(1, 9)
    return Question(a, b, Operation.MULTIPLICATION, a * b)


def _division(difficulty: Difficulty, rng: random.Random) -> Question:
    quotient = _randint(rng, _DIVISION_QUOTIENT[difficulty])
    divisor = _randint(rng, _DIVISION_DIVISOR[difficulty])
    return Question(quotient * divisor, divisor, Operation.DIVISION, quotient)


def _square_root(difficulty: Difficulty, rng: random.Random) -> Question:
    base = _randint(rng, _SQUARE_ROOT_BASE[difficulty])
    return Question(base * base, None, Operation.SQUARE_ROOT, base)


def _cube_root(difficulty: Difficulty, rng: random.Random) -> Question:
    base = _randint(rng, _CUBE_ROOT_BASE[difficulty])
    return Question(base**3, None, Operation.CUBE_ROOT, base)


def _prime(difficulty: Difficulty, rng: random.Random) -> Question:
    n = _randint(rng, _PRIME_CANDIDATE[difficulty])
    return Question(n, None, Operation.PRIME, 1 if is_prime(n) else 0)


def _percentage(difficulty: Difficulty, rng: random.Random) -> Question:
    percents, tens = _PERCENTAGE_TABLE[difficulty]
    pct = rng.choice(percents)
    base = _randint(rng, tens) * 10
    return Question(pct, base, Operation.PERCENTAGE, pct * base / 100)


_GENERATORS: dict[Operation, Callable[[Difficulty, random.Random], Question]] = {
    Operation.ADDITION: _addition,
    Operation.SUBTRACTION: _subtraction,
    Operation.MULTIPLICATION: _multiplication,
    Operation.DIVISION: _division,
    Operation.SQUARE_ROOT: _square_root,
    Operation.CUBE_ROOT: _cube_root,
    Operation.PRIME: _prime,
    Operation.PERCENTAGE: _percentage,
}


def generate_question(
    operations: Iterable[Operation],
    difficulty: Difficulty,
    previous: Question | None = None,
    *,
    rng: random.Random,
) -> Question:
    """Generate a question that differs from ``previous``.

    Raises:
        ValueError: if ``operations`` is empty.
    """

    selected = set(operations)
    # Declaration order keeps seeded streams independent of set ordering.
    choices = [op for op in Operation if op in selected]
    if not choices:
        raise ValueError("operations must not be empty")

    question = _GENERATORS[rng.choice(choices)](difficulty, rng)
    if previous is None:
        return question

    for _ in range(MAX_GENERATION_ATTEMPTS - 1):
        if question.key != previous.key:
            return question
        question = _GENERATORS[rng.choice(choices)](difficulty, rng)

    if question.key == previous.key:
        logger.debug("accepting repeat of %s after %d attempts", question.key, MAX_GENERATION_ATTEMPTS)
    return question


# -- Hints ------------------------------------------------------------------

def _digit_sum(n: int) -> int:
    return sum(int(d) for d in str(abs(n)))


def _percentage_hint(pct: int, base: int) -> str:
    if pct == 100:
        return f"100% is the whole amount: {base}."
    if pct == 50:
        return f"50% is half: {base} ÷ 2."
    if pct == 25:
        return f"25% is a quarter: halve {base}, then halve again."
    if pct == 10:
        return f"10% shifts the decimal point one place left: {base} → {format_number(base / 10)}."
    if pct % 10 == 0:
        return f"Find 10% first ({format_number(base / 10)}), then multiply by {pct // 10}."
    return f"Find 1% first ({format_number(base / 100)}), then multiply by {pct}."


def generate_hint(question: Question) -> str:
    """Mental-math strategy for ``question``."""

    a, b, op = question.operand1, question.operand2, question.operation

    if op is Operation.ADDITION and b is not None:
        if a < 10 and b < 10:
            return f"Basic fact: {a} + {b} = {a + b}"
        tens1, tens2 = a // 10 * 10, b // 10 * 10
        units1, units2 = a % 10, b % 10
        return (
            f"Add tens: {tens1} + {tens2} = {tens1 + tens2}. "
            f"Add units: {units1} + {units2} = {units1 + units2}. Then combine."
        )
    if op is Operation.SUBTRACTION and b is not None:
        if a < 20 and b < 10:
            return f"Basic subtraction: Take away {b} from {a}."
        nearest_ten = -(-b // 10) * 10
        return (
            f"Compensate: Subtract {nearest_ten} ({a} - {nearest_ten} = {a - nearest_ten}), "
            f"then add back {nearest_ten - b}."
        )
    if op is Operation.MULTIPLICATION and b is not None:
        if a > 10:
            tens = a // 10 * 10
            return f"Split: {tens} × {b} = {tens * b}, plus {a % 10} × {b} = {a % 10 * b}."
        return f"Groups: Think of {a} groups of {b}."
    if op is Operation.DIVISION and b is not None:
        return f"Inverse: What times {b} equals {a}? Try estimating: {b} × 10 = {b * 10}."
    if op is Operation.SQUARE_ROOT:
        return f"Square check: What number times itself is {a}? Hint: 10²=100, 20²=400."
    if op is Operation.CUBE_ROOT:
        return f"Cube check: What number times itself three times is {a}? Hint: 2³=8, 5³=125."
    if op is Operation.PRIME:
        return f"Divisibility: Is it even? Does the sum of digits ({_digit_sum(a)}) divide by 3?"
    if op is Operation.PERCENTAGE and b is not None:
        return _percentage_hint(a, b)
    return "Break the problem into smaller steps."


# -- Display helpers -------------------------------------------------------

_SYMBOLS: dict[Operation, str] = {
    Operation.ADDITION: "+",
    Operation.SUBTRACTION: "−",
    Operation.MULTIPLICATION: "×",
    Operation.DIVISION: "÷",
    Operation.SQUARE_ROOT: "√",
    Operation.CUBE_ROOT: "∛",
    Operation.PRIME: "?P",
    Operation.PERCENTAGE: "%",
}

_NAMES: dict[Operation, str] = {
    Operation.ADDITION: "Addition",
    Operation.SUBTRACTION: "Subtraction",
    Operation.MULTIPLICATION: "Multiplication",
    Operation.DIVISION: "Division",
    Operation.SQUARE_ROOT: "Square Root",
    Operation.CUBE_ROOT: "Cube Root",
    Operation.PRIME: "Prime Number Test",
    Operation.PERCENTAGE: "Percentage Trainer",
}


def operation_symbol(op: Operation) -> str:
    return _SYMBOLS[op]


def exercise_name(op: Operation) -> str:
    return _NAMES[op]


def format_number(x: int | float) -> str:
    if isinstance(x, float) and x.is_integer():
        return str(int(x))
    if isinstance(x, float):
        return f"{x:.2f}".rstrip("0").rstrip(".")
    return str(x)


def format_prompt(question: Question) -> str:
    a, b, op = question.operand1, question.operand2, question.operation
    if op is Operation.SQUARE_ROOT:
        return f"√{a} ="
    if op is Operation.CUBE_ROOT:
        return f"∛{a} ="
    if op is Operation.PRIME:
        return f"Is {a} prime? (1 = yes, 0 = no)"
    if op is Operation.PERCENTAGE:
        return f"{a}% of {b} ="
    return f"{a} {_SYMBOLS[op]} {b} ="
