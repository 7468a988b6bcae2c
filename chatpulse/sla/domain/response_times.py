"""
Response Times
==============

Customer-to-agent response times within a chat and their distribution
across chats. Bot messages are automated and never count as responses.
"""

from typing import List, Optional, Sequence

from chatpulse.shared.domain.numbers import round_half_up
from chatpulse.sla.domain.entities import (
    MessageForSLA,
    ResponseTimeMetrics,
    ResponseTimeResult,
)

FAST_THRESHOLD_MS = 60_000
GOOD_THRESHOLD_MS = 180_000


class ResponseTimeIndicator(str):
    """Visual classification of a response time."""
    FAST = "fast"
    GOOD = "good"
    SLOW = "slow"


def calculate_chat_response_times(messages: Sequence[MessageForSLA]) -> ResponseTimeResult:
    """
    Response times for one chat, messages in chronological order.

    Each customer message is answered at most once; only positive gaps count.
    """
    response_times: List[float] = []
    last_customer_ms: Optional[float] = None

    for message in messages:
        message_ms = message.created_at.timestamp() * 1000
        if message.is_customer:
            last_customer_ms = message_ms
            continue
        if message.is_agent and last_customer_ms is not None:
            gap = message_ms - last_customer_ms
            if gap > 0:
                response_times.append(gap)
                last_customer_ms = None

    if not response_times:
        return ResponseTimeResult()

    return ResponseTimeResult(
        first_response_time_ms=response_times[0],
        avg_response_time_ms=round_half_up(sum(response_times) / len(response_times)),
        fastest_response_time_ms=min(response_times),
        slowest_response_time_ms=max(response_times),
        total_agent_responses=len(response_times),
    )


def calculate_percentile(values: Sequence[float], percentile: float) -> float:
    """
    Percentile by linear interpolation between closest ranks.

    Returns 0 for an empty sequence.
    """
    if not values:
        return 0.0
    ordered = sorted(values)

    index = (percentile / 100) * (len(ordered) - 1)
    lower = int(index)
    upper = min(lower + 1, len(ordered) - 1)
    weight = index - lower

    if weight == 0 or lower == upper:
        return float(ordered[lower])
    return ordered[lower] * (1 - weight) + ordered[upper] * weight


def calculate_response_time_metrics(times_ms: Sequence[float]) -> ResponseTimeMetrics:
    """Average and p50/p90/p95 of a set of response times."""
    if not times_ms:
        return ResponseTimeMetrics()
    ordered = sorted(times_ms)
    return ResponseTimeMetrics(
        average=sum(ordered) / len(ordered),
        p50=calculate_percentile(ordered, 50),
        p90=calculate_percentile(ordered, 90),
        p95=calculate_percentile(ordered, 95),
        count=len(ordered),
    )


def format_response_time(ms: float) -> str:
    """
    Human-readable duration.

    45000 -> "45s", 83000 -> "1m 23s", 3665000 -> "1h 1m".
    """
    if ms < 0:
        return "0s"

    if ms < 60_000:
        return f"{round_half_up(ms / 1000)}s"

    if ms < 3_600_000:
        minutes = int(ms // 60_000)
        seconds = round_half_up((ms % 60_000) / 1000)
        if seconds == 0:
            return f"{minutes}m"
        return f"{minutes}m {seconds}s"

    hours = int(ms // 3_600_000)
    minutes = round_half_up((ms % 3_600_000) / 60_000)
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h {minutes}m"


def get_response_time_indicator(ms: float) -> str:
    if ms < FAST_THRESHOLD_MS:
        return ResponseTimeIndicator.FAST
    if ms < GOOD_THRESHOLD_MS:
        return ResponseTimeIndicator.GOOD
    return ResponseTimeIndicator.SLOW
