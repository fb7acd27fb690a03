from dataclasses import asdict
import logging
from typing import Any

from django.conf import settings
from django.http import HttpResponse
from rest_framework import mixins, permissions, serializers, status, viewsets
from rest_framework.decorators import (
    action,
    api_view,
    permission_classes,
    throttle_classes,
)
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle

from surveylink_app.core.access import is_admin, reachable_views
from surveylink_app.surveys.exceptions import (
    InvitationError,
    PersistenceFailure,
    SurveyClosed,
    SurveyLinkError,
    ValidationFailure,
)
from surveylink_app.surveys.models import (
    Survey,
    SurveyInvitation,
    SurveyQuestion,
    SurveyResponse,
)
from surveylink_app.surveys.services import invitation_service, survey_service
from surveylink_app.surveys.services.export_service import ExportService
from surveylink_app.surveys.services.response_analytics import compute_survey_results
from surveylink_app.surveys.services.submission_service import (
    open_invitation,
    submit_response,
)
from surveylink_app.surveys.store import SurveyStore

logger = logging.getLogger(__name__)


def error_response(exc: SurveyLinkError) -> Response:
    """Translate a service error into ``{"error": <kind>, "message": ...}``."""
    if isinstance(exc, ValidationFailure):
        return Response(
            {"error": "validation", "message": str(exc), "errors": exc.errors},
            status=status.HTTP_400_BAD_REQUEST,
        )
    if isinstance(exc, (InvitationError, SurveyClosed)):
        code = (
            status.HTTP_404_NOT_FOUND
            if exc.status == "not_found"
            else status.HTTP_410_GONE
        )
        return Response({"error": exc.status, "message": exc.message}, status=code)
    if isinstance(exc, PersistenceFailure):
        return Response(
            {"error": "unavailable", "message": str(exc)},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return Response(
        {"error": "error", "message": str(exc)}, status=status.HTTP_400_BAD_REQUEST
    )


class IsSurveyAdmin(permissions.BasePermission):
    """Signed-in users flagged as survey admins."""

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and is_admin(request.user))


class SubmissionRateThrottle(AnonRateThrottle):
    scope = "submissions"


class SurveySerializer(serializers.ModelSerializer):
    question_count = serializers.IntegerField(
        source="questions.count", read_only=True
    )

    class Meta:
        model = Survey
        fields = [
            "id",
            "title",
            "description",
            "is_active",
            "image_url",
            "created_at",
            "updated_at",
            "question_count",
        ]
        read_only_fields = ["created_at", "updated_at"]


class QuestionSerializer(serializers.ModelSerializer):
    class Meta:
        model = SurveyQuestion
        fields = [
            "id",
            "text",
            "type",
            "options",
            "scale_min",
            "scale_max",
            "multiple_select",
            "percentage_max",
            "question_order",
        ]


class InvitationSerializer(serializers.ModelSerializer):
    link = serializers.SerializerMethodField()
    state = serializers.SerializerMethodField()
    remaining_uses = serializers.IntegerField(read_only=True)

    class Meta:
        model = SurveyInvitation
        fields = [
            "id",
            "survey",
            "token",
            "invitee_name",
            "email",
            "max_uses",
            "used_count",
            "remaining_uses",
            "expires_at",
            "is_active",
            "created_at",
            "link",
            "state",
        ]
        read_only_fields = fields

    def get_link(self, obj: SurveyInvitation) -> str:
        return invitation_service.invitation_link(obj)

    def get_state(self, obj: SurveyInvitation) -> str:
        return invitation_service.invitation_state(obj)


class InvitationCreateSerializer(serializers.Serializer):
    invitee_name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    email = serializers.EmailField(required=False, allow_blank=True)
    max_uses = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    unlimited = serializers.BooleanField(required=False, default=False)
    expires_at = serializers.DateTimeField(required=False, allow_null=True)
    expires_in_days = serializers.IntegerField(
        required=False, allow_null=True, min_value=0
    )


class ResponseSerializer(serializers.ModelSerializer):
    class Meta:
        model = SurveyResponse
        fields = [
            "id",
            "survey",
            "invitation",
            "respondent_id",
            "respondent_name",
            "country_code",
            "role",
            "answers",
            "timestamp",
        ]
        read_only_fields = fields


def _filters(request) -> dict[str, Any]:
    return {
        "country": request.query_params.get("country") or None,
        "role": request.query_params.get("role") or None,
    }


class SurveyViewSet(viewsets.ModelViewSet):
    serializer_class = SurveySerializer
    permission_classes = [permissions.IsAuthenticated, IsSurveyAdmin]
    queryset = Survey.objects.all()

    def perform_create(self, serializer):
        try:
            serializer.instance = survey_service.create_survey(
                self.request.user, **serializer.validated_data
            )
        except ValidationFailure as e:
            raise serializers.ValidationError(e.errors) from e

    def perform_destroy(self, instance):
        survey_service.delete_survey(instance)

    @action(detail=True, methods=["post"])
    def duplicate(self, request, pk=None):
        copy = survey_service.duplicate_survey(self.get_object(), created_by=request.user)
        return Response(SurveySerializer(copy).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def activate(self, request, pk=None):
        survey = survey_service.set_survey_active(self.get_object(), True)
        return Response(SurveySerializer(survey).data)

    @action(detail=True, methods=["post"])
    def archive(self, request, pk=None):
        survey = survey_service.set_survey_active(self.get_object(), False)
        return Response(SurveySerializer(survey).data)

    @action(detail=True, methods=["get", "put"])
    def questions(self, request, pk=None):
        """GET the ordered questions, or PUT a full list to replace them all."""
        survey = self.get_object()
        if request.method.lower() == "put":
            items = (
                request.data
                if isinstance(request.data, list)
                else request.data.get("questions", [])
            )
            if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
                return error_response(
                    ValidationFailure({"questions": "Expected a list of questions"})
                )
            try:
                survey_service.replace_questions(survey, items)
            except ValidationFailure as e:
                return error_response(e)
        data = QuestionSerializer(survey.questions.all(), many=True).data
        return Response({"items": data, "count": len(data)})

    @action(detail=True, methods=["get", "post"])
    def invitations(self, request, pk=None):
        """List or create invitation links for a survey."""
        survey = self.get_object()
        if request.method.lower() == "get":
            data = InvitationSerializer(survey.invitations.all(), many=True).data
            return Response({"items": data, "count": len(data)})
        ser = InvitationCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        invitation = invitation_service.create_invitation(
            survey, request.user, **ser.validated_data
        )
        return Response(
            InvitationSerializer(invitation).data, status=status.HTTP_201_CREATED
        )

    @action(detail=True, methods=["get"])
    def results(self, request, pk=None):
        """Per-question aggregates over the responses matching the filters."""
        survey = self.get_object()
        store = SurveyStore()
        results = compute_survey_results(
            store.list_questions(survey.pk),
            store.list_responses(survey.pk, **_filters(request)),
        )
        return Response(asdict(results))

    @action(detail=True, methods=["get"])
    def export(self, request, pk=None):
        survey = self.get_object()
        store = SurveyStore()
        content = ExportService.generate_csv(
            survey,
            store.list_responses(survey.pk, **_filters(request)),
            store.list_questions(survey.pk),
        )
        resp = HttpResponse(content, content_type="text/csv; charset=utf-8")
        resp["Content-Disposition"] = (
            f'attachment; filename="{ExportService.filename_for(survey)}"'
        )
        return resp


class InvitationViewSet(
    mixins.RetrieveModelMixin, mixins.DestroyModelMixin, viewsets.GenericViewSet
):
    serializer_class = InvitationSerializer
    permission_classes = [permissions.IsAuthenticated, IsSurveyAdmin]
    queryset = SurveyInvitation.objects.all()

    def perform_destroy(self, instance):
        invitation_service.delete_invitation(instance)

    @action(detail=True, methods=["post"])
    def toggle(self, request, pk=None):
        invitation = invitation_service.toggle_invitation(self.get_object())
        return Response(InvitationSerializer(invitation).data)


class ResponseViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """Stored responses, filterable by ``survey``, ``country`` and ``role``."""

    serializer_class = ResponseSerializer
    permission_classes = [permissions.IsAuthenticated, IsSurveyAdmin]

    def get_queryset(self):
        qs = SurveyResponse.objects.all()
        params = self.request.query_params
        survey_id = params.get("survey")
        if survey_id:
            if not survey_id.isdigit():
                return qs.none()
            qs = qs.filter(survey_id=int(survey_id))
        if params.get("country"):
            qs = qs.filter(country_code=params["country"])
        if params.get("role"):
            qs = qs.filter(role=params["role"])
        return qs

    def perform_destroy(self, instance):
        logger.info(f"Deleted response {instance.pk} from survey {instance.survey_id}")
        instance.delete()

    @action(detail=False, methods=["post"], url_path="bulk-delete")
    def bulk_delete(self, request):
        ids = request.data.get("ids")
        if not isinstance(ids, list) or not all(
            isinstance(i, int) and not isinstance(i, bool) for i in ids
        ):
            return error_response(
                ValidationFailure({"ids": "Expected a list of response ids"})
            )
        deleted, _ = SurveyResponse.objects.filter(pk__in=ids).delete()
        logger.info(f"Bulk deleted {deleted} responses")
        return Response({"deleted": deleted})


def _invitation_required() -> Response:
    return Response(
        {
            "error": "invitation_required",
            "message": "An invitation link is required to take this survey.",
        },
        status=status.HTTP_400_BAD_REQUEST,
    )


def _submission_throttles():
    if settings.TESTING:
        return []
    return [SubmissionRateThrottle]


@api_view(["GET", "POST"])
@permission_classes([permissions.AllowAny])
def validate_invitation_view(request):
    """Check an invitation without consuming a use.

    Accepts ``survey`` and ``invite`` as query parameters or JSON body fields.
    On success returns the survey and its questions so a client can render
    the form.
    """
    source = request.query_params if request.method == "GET" else request.data
    if not isinstance(source, dict):
        return error_response(ValidationFailure({"body": "Expected a JSON object"}))
    survey_id, token = source.get("survey"), source.get("invite")
    if not survey_id or not token:
        return _invitation_required()
    try:
        access = open_invitation(survey_id, token)
    except SurveyLinkError as e:
        return error_response(e)
    return Response(
        {
            "status": "valid",
            "survey": SurveySerializer(access.survey).data,
            "questions": QuestionSerializer(
                access.survey.questions.all(), many=True
            ).data,
            "invitee_name": access.invitation.invitee_name,
            "remaining_uses": access.invitation.remaining_uses,
            "roles": settings.SURVEYLINK_RESPONDENT_ROLES,
        }
    )


@api_view(["POST"])
@permission_classes([permissions.AllowAny])
@throttle_classes(_submission_throttles())
def submit_response_view(request):
    """Submit answers through an invitation.

    Body: ``survey``, ``invite``, ``respondent_name``, ``country_code``,
    ``role`` and ``answers`` keyed by question id.
    """
    data = request.data
    if not isinstance(data, dict):
        return error_response(ValidationFailure({"body": "Expected a JSON object"}))
    if not data.get("survey") or not data.get("invite"):
        return _invitation_required()
    try:
        result = submit_response(
            data.get("survey"),
            data.get("invite"),
            {
                "respondent_name": data.get("respondent_name"),
                "country_code": data.get("country_code"),
                "role": data.get("role"),
                "answers": data.get("answers"),
            },
            user=request.user,
        )
    except SurveyLinkError as e:
        return error_response(e)
    return Response(
        ResponseSerializer(result.response).data, status=status.HTTP_201_CREATED
    )


@api_view(["GET"])
def me(request):
    """The signed-in user and the application views the access gate allows."""
    user = request.user
    return Response(
        {
            "id": user.id,
            "username": user.get_username(),
            "email": user.email,
            "is_admin": is_admin(user),
            "views": sorted(v.value for v in reachable_views(user)),
        }
    )


@api_view(["GET"])
@permission_classes([permissions.AllowAny])
@throttle_classes([])
def healthcheck(request):
    return Response({"status": "ok"})
