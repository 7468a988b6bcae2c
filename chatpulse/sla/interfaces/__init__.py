"""
SLA Interfaces Layer
=====================

HTTP routes for SLA metrics and configuration.
"""

from chatpulse.sla.interfaces.controllers import sla_router

__all__ = ["sla_router"]
