"""
SLA Infrastructure Layer
=========================

Contains:
- Repositories: read access to staged raw chats
- External: YAML configuration with watchdog hot-reload
"""

from chatpulse.sla.infrastructure.external import (
    ConfigFileHandler,
    SLAConfigManager,
    get_sla_config_manager,
    reset_sla_config_manager,
)
from chatpulse.sla.infrastructure.repositories import SQLAlchemyRawChatReader

__all__ = [
    "ConfigFileHandler",
    "SLAConfigManager",
    "SQLAlchemyRawChatReader",
    "get_sla_config_manager",
    "reset_sla_config_manager",
]
