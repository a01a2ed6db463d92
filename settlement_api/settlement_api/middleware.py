import logging
import time

logger = logging.getLogger('audit')


def get_client_ip(request):
    forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


class UserActivityLoggingMiddleWare:
    """Writes one audit line per request: who, what, outcome and timing."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        started = time.monotonic()
        response = self.get_response(request)
        elapsed_ms = (time.monotonic() - started) * 1000

        user = getattr(request, 'user', None)
        who = user if user is not None and user.is_authenticated else "Anonymous"
        logger.info(
            "%s - %s %s -> %s (%.1f ms) - IP: %s",
            who, request.method, request.get_full_path(), response.status_code, elapsed_ms, get_client_ip(request),
        )
        return response
