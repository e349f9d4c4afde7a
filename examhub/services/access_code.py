import hashlib
import secrets
from collections.abc import Awaitable, Callable

import structlog

from examhub.core.config import get_settings
from examhub.core.errors import PersistenceConflict
from examhub.core.metrics import ACCESS_CODE_COLLISIONS

logger = structlog.get_logger()


def random_code(length: int) -> str:
    digest = hashlib.sha256(secrets.token_bytes(32)).hexdigest()
    return digest[:length].upper()


def normalize_code(code: str) -> str:
    return "".join(str(code or "").split()).upper()


async def generate_access_code(code_exists: Callable[[str], Awaitable[bool]]) -> str:
    """Draw random codes until one is free.

    Each code length gets a bounded number of draws; after the primary
    length is exhausted a longer fallback length is tried before giving up.
    """
    settings = get_settings()
    lengths = [settings.access_code_length, settings.access_code_fallback_length]
    for length in lengths:
        for _ in range(settings.access_code_max_retries):
            code = random_code(length)
            if not await code_exists(code):
                return code
            ACCESS_CODE_COLLISIONS.inc()
            logger.warning("access_code_collision", length=length)
    raise PersistenceConflict(
        "Could not allocate a unique access code", entity="exam", constraint="unique_access_code"
    )
