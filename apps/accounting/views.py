import logging

import requests
from django.db import DatabaseError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from apps.accounts.decorators import admin_required
from .services import AccountingError, sync_accounting

log = logging.getLogger(__name__)


@csrf_exempt
@admin_required
@require_POST
def sync_view(request):
    log.info("[accounting] Manual sync requested by user_id=%s", request.user.id)
    try:
        results = sync_accounting()
    except (AccountingError, requests.RequestException, DatabaseError) as e:
        log.exception("[accounting] Manual sync failed")
        return JsonResponse({"error": str(e)}, status=500)
    return JsonResponse(results)
