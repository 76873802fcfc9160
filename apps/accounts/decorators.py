from functools import wraps

from django.http import JsonResponse


def admin_required(view):
    """JSON flavour of staff gating: 401 when anonymous, 403 when not an admin."""

    @wraps(view)
    def _wrapped(request, *args, **kwargs):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return JsonResponse({"error": "Unauthorized"}, status=401)
        if not getattr(user, "is_admin", False):
            return JsonResponse({"error": "Forbidden"}, status=403)
        return view(request, *args, **kwargs)

    return _wrapped
