"""
B2Chat Infrastructure Layer
===========================

Contains:
- Client: httpx-based B2Chat export API client
- Queue: in-process rate-limited request queue
- Models/Repositories: SQLAlchemy staging tables
- External: shared client, service factory and APScheduler job
"""

from chatpulse.b2chat.infrastructure.client import B2ChatClient, ExportEnvelope
from chatpulse.b2chat.infrastructure.queue import (
    QueueStats,
    RateLimitedQueue,
    RateLimiterState,
    get_rate_limited_queue,
)

__all__ = [
    "B2ChatClient",
    "ExportEnvelope",
    "QueueStats",
    "RateLimitedQueue",
    "RateLimiterState",
    "get_rate_limited_queue",
]
