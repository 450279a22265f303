from slowapi import Limiter
from slowapi.util import get_remote_address

from lams.core.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
)

# Applied to write endpoints that employees hit directly
submission_limit = f"{max(settings.rate_limit_per_minute // 6, 1)}/minute"
