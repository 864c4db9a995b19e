"""
Rate limiting configuration for the Medley API
"""

from fastapi import Request
from slowapi.util import get_remote_address


def get_real_ip(request: Request) -> str:
    """
    Client IP address, honoring proxy headers.

    Needed when the API runs behind a load balancer.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # May hold a chain of addresses; the first is the client
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return get_remote_address(request)


# Per-endpoint limits
RATE_LIMIT_TIERS = {
    "default": {
        "consult_start": "10/minute",     # New consultations
        "consult_message": "30/minute",   # Answers
        "consult_state": "60/minute",     # Snapshot reads
    },
    "trusted": {
        "consult_start": "50/minute",
        "consult_message": "150/minute",
        "consult_state": "300/minute",
    }
}
