"""
ChatPulse Analytics
===================

Customer-service analytics backend: synchronizes contacts and chats from
B2Chat and computes response-time and SLA KPIs over them.
"""

__version__ = "1.0.0"
