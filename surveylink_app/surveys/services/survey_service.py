"""
Survey administration: lifecycle changes and question editing.

Questions are saved as a whole: every save deletes the survey's existing
questions and inserts the submitted list. Question ids therefore change on
each save, and answers stored against earlier ids no longer line up with a
question.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import logging
from typing import Any

from django.core.exceptions import ValidationError
from django.db import transaction

from ..exceptions import ValidationFailure
from ..models import (
    QUESTION_OPTIONAL_FIELDS,
    QUESTION_TYPE_FIELDS,
    Survey,
    SurveyQuestion,
)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "image_url", "is_active")
NUMERIC_FIELDS = {"scale_min": int, "scale_max": int, "percentage_max": float}


def create_survey(created_by=None, *, title: str, **fields) -> Survey:
    title = (title or "").strip()
    if not title:
        raise ValidationFailure({"title": "Survey title is required"})
    survey = Survey.objects.create(
        title=title,
        created_by=created_by,
        **{k: v for k, v in fields.items() if k in EDITABLE_FIELDS and k != "title"},
    )
    logger.info(f"Created survey {survey.pk} '{survey.title}'")
    return survey


def update_survey(survey: Survey, **fields) -> Survey:
    changed = [k for k in EDITABLE_FIELDS if k in fields]
    if "title" in fields and not (fields["title"] or "").strip():
        raise ValidationFailure({"title": "Survey title is required"})
    for name in changed:
        value = fields[name]
        setattr(survey, name, value.strip() if name == "title" else value)
    if changed:
        survey.save(update_fields=[*changed, "updated_at"])
    return survey


def set_survey_active(survey: Survey, is_active: bool) -> Survey:
    """Activate a survey or archive it (archived surveys refuse submissions)."""
    survey.is_active = is_active
    survey.save(update_fields=["is_active", "updated_at"])
    logger.info(f"Survey {survey.pk} {'activated' if is_active else 'archived'}")
    return survey


def delete_survey(survey: Survey) -> None:
    """Delete a survey with its questions, invitations and responses."""
    survey_id = survey.pk
    survey.delete()
    logger.info(f"Deleted survey {survey_id}")


def normalize_question(data: Mapping[str, Any], order: int) -> SurveyQuestion:
    """Build an unsaved question from editor data.

    Fields that do not apply to the question type are nulled, option labels
    are trimmed and blank ones dropped, and ``question_order`` is ``order``.

    Raises:
        ValidationFailure: Keyed ``questions.<order>.<field>``
    """
    qtype = data.get("type")
    if qtype not in SurveyQuestion.Types.values:
        raise ValidationFailure(
            {f"questions.{order}.type": f"Unknown question type: {qtype}"}
        )

    values: dict[str, Any] = dict.fromkeys(QUESTION_OPTIONAL_FIELDS)
    for name in QUESTION_TYPE_FIELDS[qtype]:
        values[name] = data.get(name)

    errors = {}
    if qtype == SurveyQuestion.Types.SELECT:
        values["options"] = [
            str(o).strip() for o in (values["options"] or []) if str(o).strip()
        ]
        values["multiple_select"] = bool(values["multiple_select"])
    for name, cast in NUMERIC_FIELDS.items():
        if values[name] in (None, ""):
            values[name] = None
            continue
        try:
            values[name] = cast(values[name])
        except (TypeError, ValueError):
            errors[f"questions.{order}.{name}"] = "Must be a number"
            values[name] = None

    question = SurveyQuestion(
        text=str(data.get("text") or "").strip(),
        type=qtype,
        question_order=order,
        **values,
    )
    if not question.text:
        errors[f"questions.{order}.text"] = "Question text is required"
    try:
        question.clean()
    except ValidationError as e:
        for field_name, messages in e.message_dict.items():
            errors.setdefault(f"questions.{order}.{field_name}", messages[0])
    if errors:
        raise ValidationFailure(errors)
    return question


@transaction.atomic
def replace_questions(
    survey: Survey, questions: Iterable[Mapping[str, Any]]
) -> list[SurveyQuestion]:
    """Replace all of ``survey``'s questions with ``questions``, in list order.

    Every question is validated before anything is deleted, so an invalid
    list leaves the existing questions untouched.
    """
    new_questions = [normalize_question(q, i) for i, q in enumerate(questions)]
    for question in new_questions:
        question.survey = survey

    deleted, _ = SurveyQuestion.objects.filter(survey=survey).delete()
    created = SurveyQuestion.objects.bulk_create(new_questions)
    survey.save(update_fields=["updated_at"])
    logger.info(
        f"Replaced questions for survey {survey.pk}: "
        f"{deleted} removed, {len(created)} added"
    )
    return list(survey.questions.all())


@transaction.atomic
def duplicate_survey(survey: Survey, created_by=None) -> Survey:
    """Copy a survey and its questions into a new, inactive survey.

    Invitations and responses are not copied.
    """
    copy = Survey.objects.create(
        title=f"Copy of {survey.title}",
        description=survey.description,
        image_url=survey.image_url,
        is_active=False,
        created_by=created_by or survey.created_by,
    )
    SurveyQuestion.objects.bulk_create(
        [
            SurveyQuestion(
                survey=copy,
                text=q.text,
                type=q.type,
                options=list(q.options) if q.options is not None else None,
                scale_min=q.scale_min,
                scale_max=q.scale_max,
                multiple_select=q.multiple_select,
                percentage_max=q.percentage_max,
                question_order=q.question_order,
            )
            for q in survey.questions.all()
        ]
    )
    logger.info(f"Duplicated survey {survey.pk} as {copy.pk}")
    return copy
