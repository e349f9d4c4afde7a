from collections import deque
from time import monotonic

from fastapi import HTTPException, Request, status

_MEMORY_BUCKET: dict[str, deque[float]] = {}


def rate_limit(key: str, limit: int, window_seconds: int) -> None:
    now = monotonic()
    bucket = _MEMORY_BUCKET.setdefault(key, deque())
    while bucket and (now - bucket[0]) > window_seconds:
        bucket.popleft()
    if len(bucket) >= limit:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many attempts, try again later",
        )
    bucket.append(now)


def limit_client(request: Request, scope: str, limit: int, window_seconds: int) -> None:
    host = request.client.host if request.client else "unknown"
    rate_limit(key=f"{scope}:{host}", limit=limit, window_seconds=window_seconds)
