"""Rate limiting configuration using slowapi.

The module-level Limiter is wired into the app in main.py; the public
complaint intake routes tighten it with ``@limiter.limit(...)``.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Authenticated staff traffic: 120 requests/minute per client IP.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["120/minute"],
)

# Anonymous citizen submissions
PUBLIC_SUBMIT_LIMIT = "10/minute"
PUBLIC_LOOKUP_LIMIT = "30/minute"
