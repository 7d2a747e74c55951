from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, Union

from app.core.config import settings
from app.models.question import QuestionType


log = logging.getLogger(__name__)


class QuestionLike(Protocol):
    id: int
    type: str
    options: list | None


@dataclass(frozen=True)
class IndexAnswer:
    index: int


@dataclass(frozen=True)
class TextAnswer:
    text: str


@dataclass(frozen=True)
class MemoryAnswer:
    slots: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class MalformedAnswer:
    raw: Any
    reason: str


AnswerValue = Union[IndexAnswer, TextAnswer, MemoryAnswer, MalformedAnswer]


@dataclass(frozen=True)
class SubmittedAnswer:
    question_id: int
    type: str
    value: AnswerValue


def _type_value(question_type: Any) -> str:
    return str(getattr(question_type, "value", question_type) or "").strip()


def _parse_index(raw: Any) -> AnswerValue:
    # bool is an int subclass; "true" is not an option index.
    if isinstance(raw, bool) or not isinstance(raw, int):
        return MalformedAnswer(raw=raw, reason="option index must be an integer")
    return IndexAnswer(index=int(raw))


def _parse_text(raw: Any) -> AnswerValue:
    if isinstance(raw, bool) or raw is None:
        return MalformedAnswer(raw=raw, reason="text answer expected")
    if isinstance(raw, (int, float)):
        return TextAnswer(text=str(raw))
    if not isinstance(raw, str):
        return MalformedAnswer(raw=raw, reason="text answer expected")
    return TextAnswer(text=raw.strip())


def _parse_memory(raw: Any) -> AnswerValue:
    if not isinstance(raw, dict):
        return MalformedAnswer(raw=raw, reason="memory answer must be an object")

    if all(isinstance(k, str) and isinstance(v, str) for k, v in raw.items()):
        return MemoryAnswer(slots=dict(raw))

    # Some clients wrap the slot map: {"value": {"pair-0-word-1": "apple"}}
    inner = raw.get("value")
    if isinstance(inner, dict) and all(isinstance(k, str) and isinstance(v, str) for k, v in inner.items()):
        return MemoryAnswer(slots=dict(inner))

    return MalformedAnswer(raw=raw, reason="memory answer must map slot ids to words")


_PARSERS: dict[str, Callable[[Any], AnswerValue]] = {
    QuestionType.multiple_choice.value: _parse_index,
    QuestionType.fill_in_gap.value: _parse_text,
    QuestionType.memory_pair.value: _parse_memory,
}


def parse_answer_value(question_type: Any, raw: Any) -> AnswerValue:
    """Resolve a raw JSON answer into its tagged variant for `question_type`."""

    parser = _PARSERS.get(_type_value(question_type))
    if parser is None:
        return MalformedAnswer(raw=raw, reason=f"unknown question type: {_type_value(question_type)!r}")
    return parser(raw)


def dump_answer_value(value: AnswerValue) -> str:
    if isinstance(value, IndexAnswer):
        return json.dumps(value.index)
    if isinstance(value, TextAnswer):
        return json.dumps(value.text, ensure_ascii=False)
    if isinstance(value, MemoryAnswer):
        return json.dumps(value.slots, ensure_ascii=False, sort_keys=True)
    try:
        return json.dumps(value.raw, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value.raw)


def parse_memory_canonical(canonical: str) -> dict[str, str]:
    """Parse "pair-0-word-1:apple,pair-1-word-0:mountain" into slot -> word.

    Fragments that are not exactly `slot:word` are ignored.
    """

    out: dict[str, str] = {}
    for chunk in str(canonical or "").split(","):
        parts = chunk.split(":")
        if len(parts) != 2:
            continue
        slot, word = parts[0].strip(), parts[1].strip()
        if slot:
            out[slot] = word
    return out


def _normalize_text(s: str) -> str:
    return str(s or "").strip().lower()


def _check_multiple_choice(question: QuestionLike, value: AnswerValue, canonical: str) -> bool:
    if not isinstance(value, IndexAnswer):
        return False
    options = list(question.options or [])
    if value.index < 0 or value.index >= len(options):
        log.warning("option index out of range: question_id=%s index=%s options=%s", question.id, value.index, len(options))
        return False
    return str(options[value.index]) == str(canonical)


def _check_fill_in_gap(question: QuestionLike, value: AnswerValue, canonical: str) -> bool:
    if not isinstance(value, TextAnswer):
        return False
    return _normalize_text(value.text) == _normalize_text(canonical)


def _check_memory_pair(question: QuestionLike, value: AnswerValue, canonical: str) -> bool:
    if not isinstance(value, MemoryAnswer):
        return False

    expected = parse_memory_canonical(canonical)
    if not expected:
        log.warning("memory canonical answer has no slots: question_id=%s", question.id)
        return False

    recalled = {str(k).strip(): v for k, v in value.slots.items()}
    matched = sum(
        1 for slot, word in expected.items() if slot in recalled and _normalize_text(recalled[slot]) == _normalize_text(word)
    )
    return matched >= len(expected) * float(settings.memory_pair_threshold)


_CHECKERS: dict[str, Callable[[QuestionLike, AnswerValue, str], bool]] = {
    QuestionType.multiple_choice.value: _check_multiple_choice,
    QuestionType.fill_in_gap.value: _check_fill_in_gap,
    QuestionType.memory_pair.value: _check_memory_pair,
}


def is_correct(question: QuestionLike, value: AnswerValue, canonical: str | None) -> bool:
    """Decide whether `value` answers `question` correctly.

    Never raises: unknown types, malformed payloads and missing canonical
    answers all resolve to False and are logged.
    """

    qtype = _type_value(question.type)
    checker = _CHECKERS.get(qtype)
    if checker is None:
        log.warning("unknown question type: question_id=%s type=%r", question.id, qtype)
        return False

    if canonical is None:
        log.warning("no canonical answer for question_id=%s", question.id)
        return False

    if isinstance(value, MalformedAnswer):
        log.warning("malformed answer: question_id=%s type=%s reason=%s", question.id, qtype, value.reason)
        return False

    try:
        return bool(checker(question, value, canonical))
    except (TypeError, ValueError, AttributeError):
        log.exception("answer check failed: question_id=%s type=%s", question.id, qtype)
        return False
