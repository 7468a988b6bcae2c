"""
Shared Kernel Module
====================

This module contains shared infrastructure used across all bounded contexts
(B2Chat sync and SLA analytics).

Architecture Pattern: Modular Monolith
- Each module (b2chat, sla) is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add business logic from sync or SLA to shared kernel.
"""
