"""
SLA Application Layer
======================

Contains:
- Services: SLAService and the raw-chat conversion it relies on
- DTOs: response models for the SLA API

Depends on the domain layer and repository interfaces, not on concrete
infrastructure.
"""

from chatpulse.sla.application.services import (
    ChatSLAReport,
    IChatSource,
    ISLAConfigProvider,
    OverallCompliance,
    SLAReport,
    SLAService,
    chat_for_sla_from_raw,
)
from chatpulse.sla.application.dto import (
    ChatSLAResponse,
    SLAConfigReloadResponse,
    SLAMetricsResponse,
)

__all__ = [
    # Services
    "ChatSLAReport",
    "OverallCompliance",
    "SLAReport",
    "SLAService",
    "chat_for_sla_from_raw",
    # Repository Interfaces
    "IChatSource",
    "ISLAConfigProvider",
    # DTOs
    "ChatSLAResponse",
    "SLAConfigReloadResponse",
    "SLAMetricsResponse",
]
