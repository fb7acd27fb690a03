from django.conf import settings

from .access import AppView, is_admin, reachable_views


def access(request):
    """Expose navigation state derived from the access gate."""
    user = getattr(request, "user", None)
    views = reachable_views(user)
    return {
        "brand_title": settings.BRAND_TITLE,
        "user_is_admin": is_admin(user),
        "can_view_admin": AppView.ADMIN in views,
        "can_view_results": AppView.RESULTS in views,
    }
