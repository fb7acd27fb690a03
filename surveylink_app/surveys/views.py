from __future__ import annotations

import logging
from urllib.parse import urlencode

from django.conf import settings
from django.contrib import messages
from django.http import HttpRequest, HttpResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.urls import reverse
from django.views.decorators.http import require_http_methods, require_POST
from django_ratelimit.decorators import ratelimit

from surveylink_app.core.access import AppView
from surveylink_app.core.decorators import admin_required

from .exceptions import (
    InvitationError,
    InvitationExhausted,
    InvitationExpired,
    InvitationInactive,
    InvitationNotFound,
    PersistenceFailure,
    SurveyClosed,
    ValidationFailure,
)
from .forms import InvitationForm, SurveyForm
from .models import Survey, SurveyInvitation, SurveyQuestion, SurveyResponse
from .services import invitation_service, survey_service
from .services.export_service import ExportService
from .services.response_analytics import compute_survey_results, filter_choices
from .services.submission_service import open_invitation, submit_response
from .store import SurveyStore

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGES = {
    cls.status: cls.message
    for cls in (
        InvitationNotFound,
        InvitationInactive,
        InvitationExpired,
        InvitationExhausted,
        SurveyClosed,
    )
}


def _submit_rate(group, request):
    return settings.SURVEYLINK_SUBMIT_RATELIMIT


def _unavailable_redirect(reason: str) -> HttpResponse:
    return redirect(f"{reverse('surveys:unavailable')}?{urlencode({'reason': reason})}")


def _payload_from_post(post, questions) -> dict:
    answers = {}
    for q in questions:
        key = f"q_{q.id}"
        if q.type == SurveyQuestion.Types.SELECT and q.multiple_select:
            answers[str(q.id)] = post.getlist(key)
        else:
            answers[str(q.id)] = post.get(key, "")
    return {
        "respondent_name": post.get("respondent_name", ""),
        "country_code": post.get("country_code", ""),
        "role": post.get("role", ""),
        "answers": answers,
    }


def _question_fields(questions, answers: dict, errors: dict) -> list[dict]:
    fields = []
    for q in questions:
        key = str(q.id)
        value = answers.get(key)
        fields.append(
            {
                "question": q,
                "name": f"q_{q.id}",
                "value": value,
                "selected": value if isinstance(value, list) else [value],
                "error": errors.get(f"answers.{key}"),
                "scale_values": (
                    range(q.scale_min, q.scale_max + 1)
                    if q.type == SurveyQuestion.Types.SCALE
                    else ()
                ),
            }
        )
    return fields


@require_http_methods(["GET", "POST"])
@ratelimit(key="ip", rate=_submit_rate, method="POST", block=True)
def survey_take(request: HttpRequest) -> HttpResponse:
    """Respondent form reached through ``?survey=<id>&invite=<token>``.

    GET re-checks the invitation without consuming a use; POST submits.
    """
    survey_id = request.GET.get("survey")
    token = request.GET.get("invite")
    if not survey_id or not token:
        return render(request, "surveys/invitation_required.html")

    try:
        access = open_invitation(survey_id, token)
    except (InvitationError, SurveyClosed) as e:
        return _unavailable_redirect(e.status)
    except PersistenceFailure:
        return render(
            request,
            "surveys/unavailable.html",
            {"message": "The survey could not be loaded. Please try again."},
            status=503,
        )

    survey, invitation = access.survey, access.invitation
    questions = list(survey.questions.all())
    payload = {"respondent_name": invitation.invitee_name, "answers": {}}
    errors: dict[str, str] = {}
    status = 200

    if request.method == "POST":
        payload = _payload_from_post(request.POST, questions)
        try:
            submit_response(survey.pk, token, payload, user=request.user)
        except ValidationFailure as e:
            errors = e.errors
            status = 400
        except (InvitationError, SurveyClosed) as e:
            return _unavailable_redirect(e.status)
        except PersistenceFailure:
            messages.error(
                request, "Your response could not be saved. Please try again."
            )
            status = 503
        else:
            return redirect("surveys:thank_you")

    ctx = {
        "survey": survey,
        "invitation": invitation,
        "payload": payload,
        "errors": errors,
        "fields": _question_fields(questions, payload.get("answers", {}), errors),
        "roles": settings.SURVEYLINK_RESPONDENT_ROLES,
    }
    return render(request, "surveys/take.html", ctx, status=status)


def survey_unavailable(request: HttpRequest) -> HttpResponse:
    reason = request.GET.get("reason", "")
    message = UNAVAILABLE_MESSAGES.get(reason, InvitationError.message)
    return render(
        request, "surveys/unavailable.html", {"reason": reason, "message": message}
    )


def survey_thank_you(request: HttpRequest) -> HttpResponse:
    return render(request, "surveys/thank_you.html")


def _selected_survey(request: HttpRequest, surveys) -> Survey | None:
    survey_id = request.GET.get("survey")
    if survey_id:
        match = next((s for s in surveys if str(s.pk) == survey_id), None)
        if match is not None:
            return match
        messages.warning(request, "Survey not found; showing the latest survey.")
    return surveys[0] if surveys else None


@admin_required(AppView.RESULTS)
def results_dashboard(request: HttpRequest) -> HttpResponse:
    surveys = list(Survey.objects.all())
    survey = _selected_survey(request, surveys)
    country = request.GET.get("country") or None
    role = request.GET.get("role") or None

    ctx = {
        "surveys": surveys,
        "survey": survey,
        "country": country or "",
        "role": role or "",
    }
    if survey is not None:
        store = SurveyStore()
        questions = store.list_questions(survey.pk)
        responses = store.list_responses(survey.pk, country=country, role=role)
        ctx.update(
            {
                "questions": questions,
                "responses": responses,
                "results": compute_survey_results(questions, responses),
                "filters": filter_choices(store.list_responses(survey.pk)),
                "filter_query": urlencode(
                    {k: v for k, v in {"country": country, "role": role}.items() if v}
                ),
            }
        )
    return render(request, "surveys/results.html", ctx)


@require_POST
@admin_required(AppView.RESULTS)
def response_delete(request: HttpRequest, response_id: int) -> HttpResponse:
    response = get_object_or_404(SurveyResponse, pk=response_id)
    survey_id = response.survey_id
    response.delete()
    logger.info(f"Deleted response {response_id} from survey {survey_id}")
    messages.success(request, "Response deleted.")
    return redirect(f"{reverse('surveys:results')}?{urlencode({'survey': survey_id})}")


@admin_required(AppView.RESULTS)
def results_export(request: HttpRequest, survey_id: int) -> HttpResponse:
    """Download the responses in scope (honouring country/role filters) as CSV."""
    survey = get_object_or_404(Survey, pk=survey_id)
    store = SurveyStore()
    responses = store.list_responses(
        survey.pk,
        country=request.GET.get("country") or None,
        role=request.GET.get("role") or None,
    )
    content = ExportService.generate_csv(
        survey, responses, store.list_questions(survey.pk)
    )
    resp = HttpResponse(content, content_type="text/csv; charset=utf-8")
    resp["Content-Disposition"] = (
        f'attachment; filename="{ExportService.filename_for(survey)}"'
    )
    return resp


@require_http_methods(["GET", "POST"])
@admin_required(AppView.ADMIN)
def survey_manage(request: HttpRequest) -> HttpResponse:
    """List surveys and create new ones."""
    form = SurveyForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        survey = survey_service.create_survey(
            request.user,
            title=form.cleaned_data["title"],
            description=form.cleaned_data["description"],
            image_url=form.cleaned_data["image_url"],
        )
        messages.success(request, f"Survey '{survey.title}' created.")
        return redirect("surveys:manage")
    return render(
        request,
        "surveys/manage.html",
        {"surveys": Survey.objects.all(), "form": form},
    )


@require_POST
@admin_required(AppView.ADMIN)
def survey_action(request: HttpRequest, survey_id: int, action: str) -> HttpResponse:
    survey = get_object_or_404(Survey, pk=survey_id)
    if action == "activate":
        survey_service.set_survey_active(survey, True)
    elif action == "archive":
        survey_service.set_survey_active(survey, False)
    elif action == "duplicate":
        copy = survey_service.duplicate_survey(survey, created_by=request.user)
        messages.success(request, f"Created '{copy.title}'.")
    elif action == "delete":
        survey_service.delete_survey(survey)
        messages.success(request, "Survey deleted.")
    else:
        messages.error(request, f"Unknown action: {action}")
    return redirect("surveys:manage")


@require_http_methods(["GET", "POST"])
@admin_required(AppView.ADMIN)
def invitation_list(request: HttpRequest, survey_id: int) -> HttpResponse:
    """Invitations for a survey, with a form to create one."""
    survey = get_object_or_404(Survey, pk=survey_id)
    form = InvitationForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        data = form.cleaned_data
        invitation = invitation_service.create_invitation(
            survey,
            request.user,
            email=data["email"],
            invitee_name=data["invitee_name"],
            max_uses=data["max_uses"],
            unlimited=data["unlimited"],
            expires_in_days=data["expires_in_days"],
        )
        messages.success(
            request, f"Invitation link: {invitation_service.invitation_link(invitation)}"
        )
        return redirect("surveys:invitations", survey_id=survey.pk)

    rows = []
    for invitation in survey.invitations.all():
        link = invitation_service.invitation_link(invitation)
        rows.append(
            {
                "invitation": invitation,
                "link": link,
                "state": invitation_service.invitation_state(invitation),
                "qr_code": invitation_service.invitation_qr_code(invitation),
            }
        )
    return render(
        request,
        "surveys/invitations.html",
        {"survey": survey, "form": form, "rows": rows},
    )


@require_POST
@admin_required(AppView.ADMIN)
def invitation_toggle(request: HttpRequest, invitation_id: int) -> HttpResponse:
    invitation = get_object_or_404(SurveyInvitation, pk=invitation_id)
    invitation_service.toggle_invitation(invitation)
    return redirect("surveys:invitations", survey_id=invitation.survey_id)


@require_POST
@admin_required(AppView.ADMIN)
def invitation_delete(request: HttpRequest, invitation_id: int) -> HttpResponse:
    invitation = get_object_or_404(SurveyInvitation, pk=invitation_id)
    survey_id = invitation.survey_id
    invitation_service.delete_invitation(invitation)
    messages.success(request, "Invitation deleted.")
    return redirect("surveys:invitations", survey_id=survey_id)
