"""
ExportService - CSV export of survey responses for the results dashboard.

One row per response in scope, columns ``Name, Country, Role, Timestamp`` and
then one column per question in survey order. Multi-select answers are joined
into a single cell.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
import csv
from datetime import date
from io import StringIO
import logging
import re
from typing import TYPE_CHECKING, Any

from django.utils import timezone

if TYPE_CHECKING:
    from ..models import Survey, SurveyQuestion, SurveyResponse

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9_-]+")


class ExportService:
    BASE_HEADERS = ["Name", "Country", "Role", "Timestamp"]
    MULTI_VALUE_SEPARATOR = "; "
    TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

    @classmethod
    def generate_csv(
        cls,
        survey: Survey,
        responses: Iterable[SurveyResponse],
        questions: Sequence[SurveyQuestion],
    ) -> str:
        """
        Build the CSV text for ``responses``.

        Args:
            survey: Survey being exported (for logging)
            responses: Responses in scope, already filtered
            questions: Questions in survey order; one column each

        Returns:
            CSV document as a string
        """
        output = StringIO()
        writer = csv.writer(output)
        writer.writerow(cls.BASE_HEADERS + [q.text for q in questions])

        count = 0
        for response in responses:
            answers = response.answers or {}
            row = [
                response.respondent_name,
                response.country_code,
                response.role,
                cls._format_timestamp(response.timestamp),
            ]
            row.extend(cls._format_answer(answers.get(str(q.id))) for q in questions)
            writer.writerow(row)
            count += 1

        logger.info(f"Generated CSV for survey {survey.pk}: {count} responses")
        return output.getvalue()

    @classmethod
    def _format_answer(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, list):
            return cls.MULTI_VALUE_SEPARATOR.join(str(v) for v in value)
        return str(value)

    @classmethod
    def _format_timestamp(cls, value) -> str:
        if value is None:
            return ""
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.strftime(cls.TIMESTAMP_FORMAT)

    @classmethod
    def filename_for(cls, survey: Survey, on: date | None = None) -> str:
        """``<title>_results_<YYYY-MM-DD>.csv`` with the title made filesystem safe."""
        on = on or timezone.localdate()
        title = _UNSAFE_FILENAME_RE.sub("_", survey.title).strip("_") or "survey"
        return f"{title}_results_{on.isoformat()}.csv"
