# civreg/core/rate_limit.py
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from civreg.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
rate_limit_handler = _rate_limit_exceeded_handler
SUBMIT_LIMIT = settings.submit_rate_limit
