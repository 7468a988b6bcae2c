"""
Per-Chat SLA Calculator
=======================

Computes pickup, first response, average response and resolution times for
a single chat, in wall-clock seconds and in business-hours seconds, and
judges each against the thresholds applying to that chat.
"""

import math
from datetime import datetime
from typing import List, Optional

from chatpulse.config import SLAMetricType
from chatpulse.sla.domain.business_hours import (
    business_seconds_between,
    calculate_avg_response_time_bh,
)
from chatpulse.sla.domain.entities import ChatForSLA, ChatSLAMetrics, MessageForSLA
from chatpulse.sla.domain.value_objects import SLAConfig, get_sla_threshold


class SLACalculator:
    """
    Pure functions for per-chat SLA calculations.

    Stateless utility class; all per-chat SLA math in one place.
    """

    @staticmethod
    def seconds_between(start: Optional[datetime], end: Optional[datetime]) -> Optional[int]:
        """Whole seconds from start to end, or None if either is missing."""
        if start is None or end is None:
            return None
        return math.floor((end - start).total_seconds())

    @staticmethod
    def first_agent_message_time(messages: List[MessageForSLA]) -> Optional[datetime]:
        for message in messages:
            if message.is_agent:
                return message.created_at
        return None

    @staticmethod
    def avg_response_time(messages: List[MessageForSLA]) -> Optional[float]:
        """
        Average seconds between a customer message and the next agent reply.

        Consecutive agent messages count once per customer message.
        """
        response_times: List[float] = []
        last_customer_at: Optional[datetime] = None

        for message in messages:
            if message.is_customer:
                last_customer_at = message.created_at
            elif message.is_agent and last_customer_at is not None:
                response_times.append((message.created_at - last_customer_at).total_seconds())
                last_customer_at = None

        if not response_times:
            return None
        return sum(response_times) / len(response_times)

    @staticmethod
    def compliance(actual_seconds: Optional[float], target_seconds: float) -> Optional[bool]:
        if actual_seconds is None:
            return None
        return actual_seconds <= target_seconds

    @staticmethod
    def overall(flags: List[Optional[bool]]) -> Optional[bool]:
        """
        Combine the flags of the enabled metrics.

        None if nothing is enabled or any enabled flag is None, True if all
        are True, False otherwise.
        """
        if not flags or any(flag is None for flag in flags):
            return None
        return all(flags)

    @classmethod
    def calculate(
        cls,
        chat: ChatForSLA,
        config: SLAConfig,
        include_business_hours: bool = True
    ) -> ChatSLAMetrics:
        """Wall-clock (and optionally business-hours) SLA metrics for one chat."""
        result = ChatSLAMetrics()
        if chat.opened_at is None:
            return result

        targets = {
            metric: get_sla_threshold(chat, config, metric) * 60
            for metric in (
                SLAMetricType.PICKUP,
                SLAMetricType.FIRST_RESPONSE,
                SLAMetricType.AVG_RESPONSE,
                SLAMetricType.RESOLUTION,
            )
        }
        enabled = config.enabled_metrics.enabled()
        first_agent_at = cls.first_agent_message_time(chat.messages)

        # Wall clock
        result.time_to_pickup = cls.seconds_between(chat.opened_at, chat.picked_up_at)
        result.first_response_time = cls.seconds_between(chat.opened_at, first_agent_at)
        result.avg_response_time = cls.avg_response_time(chat.messages)
        result.resolution_time = cls.seconds_between(chat.opened_at, chat.closed_at)

        result.pickup_sla = cls.compliance(result.time_to_pickup, targets[SLAMetricType.PICKUP])
        result.first_response_sla = cls.compliance(
            result.first_response_time, targets[SLAMetricType.FIRST_RESPONSE]
        )
        result.avg_response_sla = cls.compliance(
            result.avg_response_time, targets[SLAMetricType.AVG_RESPONSE]
        )
        result.resolution_sla = cls.compliance(result.resolution_time, targets[SLAMetricType.RESOLUTION])
        result.overall_sla = cls.overall([getattr(result, f"{metric}_sla") for metric in enabled])

        if not include_business_hours:
            return result

        # Business hours
        office_hours = config.office_hours
        result.time_to_pickup_bh = business_seconds_between(chat.opened_at, chat.picked_up_at, office_hours)
        result.first_response_time_bh = business_seconds_between(chat.opened_at, first_agent_at, office_hours)
        result.avg_response_time_bh = calculate_avg_response_time_bh(chat.messages, office_hours)
        result.resolution_time_bh = business_seconds_between(chat.opened_at, chat.closed_at, office_hours)

        result.pickup_sla_bh = cls.compliance(result.time_to_pickup_bh, targets[SLAMetricType.PICKUP])
        result.first_response_sla_bh = cls.compliance(
            result.first_response_time_bh, targets[SLAMetricType.FIRST_RESPONSE]
        )
        result.avg_response_sla_bh = cls.compliance(
            result.avg_response_time_bh, targets[SLAMetricType.AVG_RESPONSE]
        )
        result.resolution_sla_bh = cls.compliance(
            result.resolution_time_bh, targets[SLAMetricType.RESOLUTION]
        )
        result.overall_sla_bh = cls.overall([getattr(result, f"{metric}_sla_bh") for metric in enabled])

        return result


def calculate_chat_sla(chat: ChatForSLA, config: SLAConfig) -> ChatSLAMetrics:
    """SLA metrics for one chat, wall clock and business hours."""
    return SLACalculator.calculate(chat, config)
