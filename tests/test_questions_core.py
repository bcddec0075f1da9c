"""Tests for the deterministic question generator.

These exercise the range table for every operation/difficulty pair, the
answer derivation, the anti-repeat rule and the hint text.  Randomness comes
from seeded ``random.Random`` instances so every run sees the same stream.
"""

from __future__ import annotations

import math
import random

import pytest

from mental_math.questions import (
    MAX_GENERATION_ATTEMPTS,
    Difficulty,
    Operation,
    Question,
    exercise_name,
    format_number,
    format_prompt,
    generate_hint,
    generate_question,
    is_prime,
    operation_symbol,
    solve,
)


def _sample(op: Operation, difficulty: Difficulty, n: int = 300, seed: int = 99) -> list[Question]:
    rng = random.Random(seed)
    return [generate_question({op}, difficulty, rng=rng) for _ in range(n)]


def _independent_answer(q: Question) -> float:
    a, b = q.operand1, q.operand2
    if q.operation is Operation.ADDITION:
        return a + b
    if q.operation is Operation.SUBTRACTION:
        return a - b
    if q.operation is Operation.MULTIPLICATION:
        return a * b
    if q.operation is Operation.DIVISION:
        return a / b
    if q.operation is Operation.SQUARE_ROOT:
        return round(math.sqrt(a))
    if q.operation is Operation.CUBE_ROOT:
        return round(a ** (1.0 / 3.0))
    if q.operation is Operation.PRIME:
        return 1 if a > 1 and all(a % d for d in range(2, a)) else 0
    return a * b / 100


def test_generator_determinism_same_seed_same_sequence() -> None:
    ops = set(Operation)
    rng1 = random.Random(123)
    rng2 = random.Random(123)
    seq1 = [generate_question(ops, Difficulty.INTERMEDIATE, rng=rng1) for _ in range(50)]
    seq2 = [generate_question(ops, Difficulty.INTERMEDIATE, rng=rng2) for _ in range(50)]
    assert seq1 == seq2


@pytest.mark.parametrize("difficulty", list(Difficulty))
@pytest.mark.parametrize("op", list(Operation))
def test_stored_answer_matches_recomputed_answer(op: Operation, difficulty: Difficulty) -> None:
    for q in _sample(op, difficulty):
        assert q.operation is op
        assert math.isclose(q.answer, _independent_answer(q))
        assert q.answer == solve(q.operation, q.operand1, q.operand2)


@pytest.mark.parametrize("difficulty", list(Difficulty))
def test_subtraction_never_negative(difficulty: Difficulty) -> None:
    for q in _sample(Operation.SUBTRACTION, difficulty):
        assert q.operand2 is not None
        assert q.operand1 >= q.operand2
        assert q.answer >= 0


@pytest.mark.parametrize("difficulty", list(Difficulty))
def test_division_is_exact(difficulty: Difficulty) -> None:
    for q in _sample(Operation.DIVISION, difficulty):
        assert q.operand2 is not None and q.operand2 > 0
        assert q.operand1 % q.operand2 == 0
        assert q.answer == q.operand1 // q.operand2


def test_single_operand_operations_have_no_second_operand() -> None:
    for op in (Operation.SQUARE_ROOT, Operation.CUBE_ROOT, Operation.PRIME):
        for q in _sample(op, Difficulty.ADVANCED, n=50):
            assert q.operand2 is None


def test_operand_ranges_per_difficulty() -> None:
    for q in _sample(Operation.ADDITION, Difficulty.BEGINNER):
        assert 1 <= q.operand1 <= 9 and 1 <= q.operand2 <= 9
    for q in _sample(Operation.ADDITION, Difficulty.INTERMEDIATE):
        small, big = sorted((q.operand1, q.operand2))
        assert 2 <= small <= 9 and 10 <= big <= 50
    for q in _sample(Operation.ADDITION, Difficulty.ADVANCED):
        assert 10 <= q.operand1 <= 99 and 10 <= q.operand2 <= 99

    for q in _sample(Operation.MULTIPLICATION, Difficulty.ADVANCED):
        assert 10 <= q.operand1 <= 30 and 2 <= q.operand2 <= 12
    for q in _sample(Operation.MULTIPLICATION, Difficulty.INTERMEDIATE):
        small, big = sorted((q.operand1, q.operand2))
        assert 2 <= small <= 9 and 10 <= big <= 50

    roots = [q.answer for q in _sample(Operation.SQUARE_ROOT, Difficulty.ADVANCED)]
    assert min(roots) >= 10 and max(roots) <= 40
    cubes = [q.answer for q in _sample(Operation.CUBE_ROOT, Difficulty.BEGINNER)]
    assert set(cubes) <= {1, 2, 3, 4}
    primes = [q.operand1 for q in _sample(Operation.PRIME, Difficulty.INTERMEDIATE)]
    assert min(primes) >= 11 and max(primes) <= 70


def test_percentage_tables() -> None:
    for q in _sample(Operation.PERCENTAGE, Difficulty.BEGINNER):
        assert q.operand1 in (10, 25, 50, 100)
        assert q.operand2 % 10 == 0 and 10 <= q.operand2 <= 100
    for q in _sample(Operation.PERCENTAGE, Difficulty.INTERMEDIATE):
        assert q.operand1 in (5, 15, 20, 30, 40, 60, 75, 80, 90)
        assert q.operand2 % 10 == 0 and 10 <= q.operand2 <= 200
    for q in _sample(Operation.PERCENTAGE, Difficulty.ADVANCED):
        assert 1 <= q.operand1 <= 99
        assert q.operand2 % 10 == 0 and 100 <= q.operand2 <= 1000


def test_percentage_example() -> None:
    assert solve(Operation.PERCENTAGE, 25, 40) == 10.0
    assert solve(Operation.PERCENTAGE, 15, 30) == pytest.approx(4.5)


def test_prime_examples() -> None:
    assert solve(Operation.PRIME, 2) == 1
    assert solve(Operation.PRIME, 1) == 0
    assert solve(Operation.PRIME, 91) == 0
    assert [n for n in range(-3, 30) if is_prime(n)] == [2, 3, 5, 7, 11, 13, 17, 19, 23, 29]
    assert is_prime(97) and not is_prime(119)


def test_solve_requires_second_operand() -> None:
    with pytest.raises(ValueError):
        solve(Operation.ADDITION, 3)


def test_empty_operation_set_is_rejected() -> None:
    with pytest.raises(ValueError):
        generate_question(set(), Difficulty.BEGINNER, rng=random.Random(0))


def test_anti_repeat_never_returns_previous() -> None:
    rng = random.Random(2024)
    # A small range (four cube roots) makes repeats likely without the rule.
    prev = generate_question({Operation.CUBE_ROOT}, Difficulty.BEGINNER, rng=rng)
    for _ in range(300):
        nxt = generate_question({Operation.CUBE_ROOT}, Difficulty.BEGINNER, prev, rng=rng)
        assert nxt.key != prev.key
        prev = nxt


class _StuckRng:
    """Always returns the low bound, so every addition is 1 + 1."""

    def __init__(self) -> None:
        self.randint_calls = 0

    def randint(self, a: int, b: int) -> int:
        self.randint_calls += 1
        return a

    def choice(self, seq):  # type: ignore[no-untyped-def]
        return seq[0]

    def random(self) -> float:
        return 0.0


def test_anti_repeat_gives_up_after_bounded_attempts() -> None:
    rng = _StuckRng()
    previous = Question(1, 1, Operation.ADDITION, 2)
    q = generate_question({Operation.ADDITION}, Difficulty.BEGINNER, previous, rng=rng)  # type: ignore[arg-type]
    assert q.key == previous.key
    assert rng.randint_calls == 2 * MAX_GENERATION_ATTEMPTS


def test_hints_follow_operation_rules() -> None:
    assert generate_hint(Question(3, 4, Operation.ADDITION, 7)) == "Basic fact: 3 + 4 = 7"
    assert generate_hint(Question(34, 25, Operation.ADDITION, 59)) == (
        "Add tens: 30 + 20 = 50. Add units: 4 + 5 = 9. Then combine."
    )
    assert generate_hint(Question(15, 6, Operation.SUBTRACTION, 9)) == "Basic subtraction: Take away 6 from 15."
    assert generate_hint(Question(52, 17, Operation.SUBTRACTION, 35)) == (
        "Compensate: Subtract 20 (52 - 20 = 32), then add back 3."
    )
    assert generate_hint(Question(23, 4, Operation.MULTIPLICATION, 92)) == "Split: 20 × 4 = 80, plus 3 × 4 = 12."
    assert generate_hint(Question(6, 7, Operation.MULTIPLICATION, 42)) == "Groups: Think of 6 groups of 7."
    assert "What times 6 equals 42" in generate_hint(Question(42, 6, Operation.DIVISION, 7))
    assert "times itself is 49" in generate_hint(Question(49, None, Operation.SQUARE_ROOT, 7))
    assert "three times is 27" in generate_hint(Question(27, None, Operation.CUBE_ROOT, 3))
    assert "(10)" in generate_hint(Question(91, None, Operation.PRIME, 0))


def test_percentage_hints_use_shortcuts() -> None:
    assert "decimal point" in generate_hint(Question(10, 70, Operation.PERCENTAGE, 7.0))
    assert "half" in generate_hint(Question(50, 80, Operation.PERCENTAGE, 40.0))
    assert "quarter" in generate_hint(Question(25, 40, Operation.PERCENTAGE, 10.0))
    assert "whole amount" in generate_hint(Question(100, 30, Operation.PERCENTAGE, 30.0))
    assert generate_hint(Question(30, 120, Operation.PERCENTAGE, 36.0)) == (
        "Find 10% first (12), then multiply by 3."
    )
    assert generate_hint(Question(7, 250, Operation.PERCENTAGE, 17.5)) == (
        "Find 1% first (2.5), then multiply by 7."
    )


def test_prompt_and_number_formatting() -> None:
    assert format_prompt(Question(3, 4, Operation.ADDITION, 7)) == "3 + 4 ="
    assert format_prompt(Question(25, 40, Operation.PERCENTAGE, 10.0)) == "25% of 40 ="
    assert format_prompt(Question(64, None, Operation.SQUARE_ROOT, 8)) == "√64 ="
    assert format_number(10.0) == "10"
    assert format_number(4.5) == "4.5"
    assert format_number(7) == "7"


def test_symbols_and_names_cover_every_operation() -> None:
    assert operation_symbol(Operation.DIVISION) == "÷"
    assert operation_symbol(Operation.PERCENTAGE) == "%"
    assert exercise_name(Operation.PRIME) == "Prime Number Test"
    assert all(operation_symbol(op) and exercise_name(op) for op in Operation)
