"""Per-IP throttling of the unauthenticated auth endpoints."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from ledgergate.config.settings import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.auth_rate_limit_enabled)
