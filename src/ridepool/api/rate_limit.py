"""Rate limiting configuration using slowapi."""

import time
from collections import defaultdict

from opentelemetry import metrics
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

meter = metrics.get_meter("ridepool")

rate_limit_hits = meter.create_counter(
    name="ridepool_api_rate_limit_hits_total",
    description="Total API requests rejected by rate limiting",
    unit="1",
)

WINDOW_SECONDS = {"second": 1, "minute": 60, "hour": 3600, "day": 86400}


def get_user_or_ip(request: Request) -> str:
    """Rate limit per calling user when known, otherwise per IP."""
    user_id = request.headers.get("X-User-Id")
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(key_func=get_user_or_ip)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """429 in the service error envelope, with a Retry-After header."""
    rate_limit_hits.add(1, {"endpoint": request.url.path, "method": request.method})

    retry_after = "60"
    view_rate_limit = getattr(request.state, "view_rate_limit", None)
    if view_rate_limit:
        limit_text = str(view_rate_limit)
        for unit, seconds in WINDOW_SECONDS.items():
            if unit in limit_text:
                retry_after = str(seconds)
                break

    response = JSONResponse(
        status_code=429,
        content={"error": "rate_limited", "detail": str(exc.detail), "details": {}},
    )
    response.headers["retry-after"] = retry_after
    return response


class WebSocketRateLimiter:
    """Simple sliding-window rate limiter for WebSocket connections."""

    def __init__(self, max_connections: int, window_seconds: int) -> None:
        self.max_connections = max_connections
        self.window_seconds = window_seconds
        self._attempts: dict[str, list[float]] = defaultdict(list)

    def is_limited(self, key: str) -> bool:
        now = time.time()
        cutoff = now - self.window_seconds
        self._attempts[key] = [t for t in self._attempts[key] if t > cutoff]
        if len(self._attempts[key]) >= self.max_connections:
            return True
        self._attempts[key].append(now)
        return False

    def reset(self) -> None:
        self._attempts.clear()


ws_limiter = WebSocketRateLimiter(max_connections=10, window_seconds=60)
