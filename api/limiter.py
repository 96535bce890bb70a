"""
api/limiter.py -- Shared slowapi rate limiter instance and per-route limits.

Import this in api/main.py (to mount as middleware) and in the route modules
(to apply per-route limits with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

Limits come from Settings so operators can tune them without a code change;
RATE_LIMIT_ENABLED=false turns the limiter off entirely (tests, local dev).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

_settings = get_settings()

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://", enabled=_settings.rate_limit_enabled)

# Login, registration, verify-email, check-status
AUTH_LIMIT = _settings.auth_rate_limit
# Endpoints that send email -- keeps the form from being used as a mail cannon
EMAIL_LIMIT = _settings.email_rate_limit
# change-password / reset-password
PASSWORD_LIMIT = _settings.password_rate_limit
