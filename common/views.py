from django.db import connection, DatabaseError
from django.http import JsonResponse
from django.views import View
import logging

logger = logging.getLogger(__name__)


class HealthView(View):
    """Liveness check; verifies the database connection."""

    def get(self, request):
        try:
            with connection.cursor() as cursor:
                cursor.execute('SELECT 1')
        except DatabaseError as e:
            logger.error(f"Health check failed: {e}")
            return JsonResponse({
                'success': False,
                'error': {'code': 'database_unavailable', 'message': str(e)}
            }, status=503)

        return JsonResponse({
            'success': True,
            'data': {'status': 'ok', 'database': connection.vendor}
        })
