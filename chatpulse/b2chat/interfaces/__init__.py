"""
B2Chat Interfaces Layer
=======================

FastAPI routes for triggering extracts and inspecting sync state.
"""

from chatpulse.b2chat.interfaces.controllers import sync_router

__all__ = ["sync_router"]
