"""Submission payload checks that run before any storage call."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import math
import re
from typing import Any

from django.conf import settings

from .exceptions import ValidationFailure
from .models import SurveyQuestion

_WHITESPACE_RE = re.compile(r"\s+")


def respondent_id_from_name(name: str) -> str:
    return _WHITESPACE_RE.sub("_", name.strip().lower())


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _parse_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _clean_answer(question: SurveyQuestion, value: Any) -> tuple[Any, str | None]:
    """Return ``(cleaned value, error message)`` for one answer."""
    label = question.text[:50]
    Types = SurveyQuestion.Types

    if question.type == Types.SELECT and question.multiple_select:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list) or not value:
            return None, f"Please select at least one option for: {label}"
        chosen = [str(v) for v in value]
        unknown = [v for v in chosen if v not in (question.options or [])]
        if unknown:
            return None, f"Unknown option(s) {', '.join(unknown)} for: {label}"
        return chosen, None

    if _is_blank(value) or (isinstance(value, list) and not value):
        return None, f"Please answer question: {label}"

    if question.type == Types.SELECT:
        if str(value) not in (question.options or []):
            return None, f"Unknown option {value} for: {label}"
        return str(value), None

    if question.type == Types.SCALE:
        number = _parse_number(value)
        if number is None or not number.is_integer():
            return None, f"Please choose a whole number for: {label}"
        number = int(number)
        if not question.scale_min <= number <= question.scale_max:
            return None, (
                f"Answer must be between {question.scale_min} and "
                f"{question.scale_max} for: {label}"
            )
        return number, None

    if question.type == Types.PERCENTAGE:
        number = _parse_number(value)
        maximum = question.percentage_max if question.percentage_max is not None else 100
        if number is None or number < 0 or number > maximum:
            return None, f"Percentage must be between 0 and {maximum:g}"
        return number, None

    return str(value).strip(), None


def validate_submission(
    questions: Iterable[SurveyQuestion], payload: Mapping[str, Any]
) -> dict[str, Any]:
    """Validate a respondent payload against the survey's questions.

    Args:
        questions: The survey's current questions
        payload: ``respondent_name``, ``country_code``, ``role`` and an
            ``answers`` mapping keyed by question id

    Returns:
        Cleaned fields ready for ``SurveyStore.insert_response``: respondent
        fields plus ``answers`` keyed by the question id as a string

    Raises:
        ValidationFailure: With every problem found, keyed by field
    """
    errors: dict[str, str] = {}

    name = str(payload.get("respondent_name") or "").strip()
    country_code = str(payload.get("country_code") or "").strip()
    role = str(payload.get("role") or "").strip()

    if not name:
        errors["respondent_name"] = "Please enter your name"
    if not country_code:
        errors["country_code"] = "Please enter your country code"
    allowed_roles = settings.SURVEYLINK_RESPONDENT_ROLES
    if not role:
        errors["role"] = "Please select your role"
    elif allowed_roles and role not in allowed_roles:
        errors["role"] = f"Role must be one of: {', '.join(allowed_roles)}"

    raw_answers = payload.get("answers") or {}
    if not isinstance(raw_answers, Mapping):
        raise ValidationFailure({**errors, "answers": "Answers must be an object"})

    answers: dict[str, Any] = {}
    for question in questions:
        key = str(question.id)
        cleaned, error = _clean_answer(question, raw_answers.get(key))
        if error:
            errors[f"answers.{key}"] = error
        else:
            answers[key] = cleaned

    if errors:
        raise ValidationFailure(errors)

    return {
        "respondent_id": respondent_id_from_name(name),
        "respondent_name": name,
        "country_code": country_code,
        "role": role,
        "answers": answers,
    }
