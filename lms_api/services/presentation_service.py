"""
Learner-facing question view.

``PresentedQuestion`` / ``PresentedOption`` have no field that could carry an
answer key, so nothing built from them can leak option correctness.

Shuffling uses ``random.Random`` seeded with the attempt's stored seed
(string seeds are hashed with SHA-512, so the permutation is stable across
processes and restarts). Options of each question use their own seed derived
from ``(seed, question_id)``.
"""
import random
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from lms_api.models.db.question import QuestionOption
from lms_api.models.db.test import TestQuestion

T = TypeVar("T")


@dataclass(frozen=True)
class PresentedOption:
    id: int
    text: str


@dataclass(frozen=True)
class PresentedQuestion:
    question_id: int
    type: str
    title: str
    question_text: str
    points: int
    options: tuple[PresentedOption, ...]


def new_seed() -> str:
    """Fresh per-attempt shuffle seed."""
    return uuid.uuid4().hex


def seeded_shuffle(items: Iterable[T], seed: str) -> list[T]:
    """Fisher-Yates permutation that depends only on seed and input order."""
    shuffled = list(items)
    random.Random(seed).shuffle(shuffled)
    return shuffled


def option_seed(seed: str, question_id: int) -> str:
    return f"{seed}:{question_id}"


def question_order(
    test_questions: Sequence[TestQuestion], shuffle: bool, seed: str
) -> list[int]:
    """
    Question ids in display order.
    test_questions must already be in canonical (sort_order) order.
    """
    ids = [tq.question_id for tq in test_questions]
    return seeded_shuffle(ids, seed) if shuffle else ids


def _ordered_options(options: Iterable[QuestionOption]) -> list[QuestionOption]:
    return sorted(options, key=lambda option: (option.sort_order, option.id))


def present(
    test_questions: Sequence[TestQuestion],
    seed: str,
    order: Sequence[int],
    shuffle_options: bool,
) -> list[PresentedQuestion]:
    """Build the answer-stripped view in the snapshotted order."""
    by_id = {tq.question_id: tq.question for tq in test_questions}
    view: list[PresentedQuestion] = []

    for question_id in order:
        question = by_id.get(question_id)
        if question is None:
            continue

        options = _ordered_options(question.options) if question.is_single_choice else []
        if shuffle_options and options:
            options = seeded_shuffle(options, option_seed(seed, question_id))

        view.append(
            PresentedQuestion(
                question_id=question.id,
                type=question.question_type,
                title=question.title,
                question_text=question.question_text,
                points=question.points,
                options=tuple(
                    PresentedOption(id=option.id, text=option.option_text)
                    for option in options
                ),
            )
        )
    return view
