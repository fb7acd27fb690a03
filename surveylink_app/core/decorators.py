"""Decorators enforcing the access gate in server-rendered views."""

from functools import wraps

from django.contrib.auth.views import redirect_to_login
from django.http import HttpRequest, HttpResponse
from django.shortcuts import render

from .access import AppView, GateDecision, check_access


def admin_required(target: AppView = AppView.ADMIN):
    """Require an admin-flagged user for ``target``.

    Anonymous users are sent to the login page; signed-in users without the
    admin flag get the locked page.

    Usage:
        @admin_required(AppView.RESULTS)
        def results_dashboard(request):
            ...
    """

    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request: HttpRequest, *args, **kwargs) -> HttpResponse:
            decision = check_access(request.user, target)
            if decision == GateDecision.SIGN_IN_REQUIRED:
                return redirect_to_login(request.get_full_path())
            if decision == GateDecision.LOCKED:
                return render(
                    request,
                    "core/locked.html",
                    {"target": target.value},
                    status=403,
                )
            return view_func(request, *args, **kwargs)

        return wrapper

    return decorator
