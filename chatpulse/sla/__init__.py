"""
SLA Module
===========

SLA evaluation over staged B2Chat chats: per-chat pickup, first response,
average response and resolution times (wall clock and business hours),
aggregate compliance and response-time percentiles.
"""
