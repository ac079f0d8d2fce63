import logging
import time
from typing import Callable, Dict, Optional

from django.conf import settings
from django.http import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)


def _actor_id(request: HttpRequest) -> Optional[int]:
    user = getattr(request, 'user', None)
    if user is not None and getattr(user, 'is_authenticated', False):
        return user.pk
    return None


class SlowRequestLoggingMiddleware:
    """Log a `slow_request` event for requests slower than SLOW_REQUEST_LOG_MS.

    Entry and promotion endpoints hold row locks, so a slow request here
    usually means lock contention on a batch or roster row. Paths listed in
    SLOW_REQUEST_LOG_SKIP_PATHS (the health check by default) are never timed.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]):
        self.get_response = get_response

    def _payload(self, request: HttpRequest, response: HttpResponse, elapsed_ms: float, threshold_ms: int) -> Dict:
        return {
            'event': 'slow_request',
            'method': request.method,
            'path': request.path,
            'status': response.status_code,
            'duration_ms': round(elapsed_ms, 2),
            'threshold_ms': threshold_ms,
            'actor_id': _actor_id(request),
        }

    def __call__(self, request: HttpRequest):
        skip_paths = tuple(getattr(settings, 'SLOW_REQUEST_LOG_SKIP_PATHS', ('/health/',)))
        if not getattr(settings, 'SLOW_REQUEST_LOG_ENABLED', True) or request.path.startswith(skip_paths):
            return self.get_response(request)

        threshold_ms = int(getattr(settings, 'SLOW_REQUEST_LOG_MS', 1200))
        started = time.perf_counter()
        response = self.get_response(request)
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        if elapsed_ms >= threshold_ms:
            logger.warning('%s', self._payload(request, response, elapsed_ms, threshold_ms))
        return response
