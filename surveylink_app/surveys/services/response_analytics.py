"""
Response analytics service for the results dashboard.

Summarises the responses in scope (already filtered by country/role) per
question:

- scale: a count for every integer in the range, zero buckets included
- select: a count per declared option in declared order; answers naming an
  option that is not declared are ignored
- percentage: mean of the answers that parse as finite numbers
- text: the answers themselves with who gave them

Nothing here raises on malformed answers; they are skipped.
"""

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
import math
from typing import Any

from ..models import SurveyQuestion, SurveyResponse


@dataclass
class Bucket:
    label: str
    count: int
    percent: float = 0.0


@dataclass
class TextAnswer:
    answer: str
    respondent_name: str
    country_code: str
    role: str
    timestamp: datetime | None = None


@dataclass
class QuestionSummary:
    """Summary of the answers to a single question."""

    question_id: int
    question_text: str
    question_type: str
    # Responses that contributed to the summary
    answered: int = 0
    buckets: list[Bucket] = field(default_factory=list)
    # Percentage questions only; None when no answer was numeric
    average: float | None = None
    text_answers: list[TextAnswer] = field(default_factory=list)


@dataclass
class SurveyResults:
    """Aggregate results for a survey's responses."""

    total_responses: int
    summaries: list[QuestionSummary] = field(default_factory=list)


def compute_survey_results(
    questions: Iterable[SurveyQuestion], responses: Sequence[SurveyResponse]
) -> SurveyResults:
    """
    Compute per-question summaries.

    Args:
        questions: Questions in survey order
        responses: Responses in scope

    Returns:
        SurveyResults with one summary per question, in the given order
    """
    responses = list(responses)
    return SurveyResults(
        total_responses=len(responses),
        summaries=[summarize_question(q, responses) for q in questions],
    )


def summarize_question(
    question: SurveyQuestion, responses: Iterable[SurveyResponse]
) -> QuestionSummary:
    q_id = str(question.id)
    answers = [(r, (r.answers or {}).get(q_id)) for r in responses]
    summary = QuestionSummary(
        question_id=question.id,
        question_text=question.text,
        question_type=question.type,
    )

    if question.type == SurveyQuestion.Types.SCALE:
        _summarize_scale(question, [a for _, a in answers], summary)
    elif question.type == SurveyQuestion.Types.SELECT:
        _summarize_select(question, [a for _, a in answers], summary)
    elif question.type == SurveyQuestion.Types.PERCENTAGE:
        numbers = [n for n in (parse_finite_number(a) for _, a in answers) if n is not None]
        summary.answered = len(numbers)
        if numbers:
            summary.average = _round_half_up(sum(numbers) / len(numbers))
    else:
        summary.text_answers = [
            TextAnswer(
                answer=str(answer),
                respondent_name=response.respondent_name,
                country_code=response.country_code,
                role=response.role,
                timestamp=response.timestamp,
            )
            for response, answer in answers
            if answer is not None and str(answer).strip() != ""
        ]
        summary.answered = len(summary.text_answers)

    return summary


def parse_finite_number(value: Any) -> float | None:
    """Return ``value`` as a float, or None for blanks, booleans, junk and NaN/inf."""
    if value is None or isinstance(value, (bool, list, dict)):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _summarize_scale(question, answers: list, summary: QuestionSummary) -> None:
    low, high = question.scale_min, question.scale_max
    if low is None or high is None or low > high:
        return
    counter: Counter = Counter()
    for answer in answers:
        if isinstance(answer, bool) or not isinstance(answer, (int, float)):
            continue
        if float(answer).is_integer() and low <= answer <= high:
            counter[int(answer)] += 1
    summary.answered = sum(counter.values())
    summary.buckets = _buckets(
        [(str(value), counter[value]) for value in range(low, high + 1)],
        summary.answered,
    )


def _summarize_select(question, answers: list, summary: QuestionSummary) -> None:
    options = [str(o) for o in (question.options or [])]
    declared = set(options)
    counter: Counter = Counter()
    answered = 0
    for answer in answers:
        chosen = answer if isinstance(answer, list) else [answer]
        hits = [str(c) for c in chosen if c is not None and str(c) in declared]
        if hits:
            answered += 1
        if not question.multiple_select:
            hits = hits[:1]
        counter.update(hits)
    summary.answered = answered
    summary.buckets = _buckets([(o, counter[o]) for o in options], answered)


def _round_half_up(value: float, places: int = 2) -> float:
    # Halves round away from zero, unlike round()
    return float(Decimal(value).quantize(Decimal(1).scaleb(-places), ROUND_HALF_UP))


def _buckets(counts: list[tuple[str, int]], answered: int) -> list[Bucket]:
    return [
        Bucket(
            label=label,
            count=count,
            percent=round(count / answered * 100, 1) if answered else 0.0,
        )
        for label, count in counts
    ]


def filter_choices(responses: Iterable[SurveyResponse]) -> dict[str, list[str]]:
    """Distinct countries and roles present, for the dashboard filter menus."""
    countries, roles = set(), set()
    for response in responses:
        if response.country_code:
            countries.add(response.country_code)
        if response.role:
            roles.add(response.role)
    return {"countries": sorted(countries), "roles": sorted(roles)}
