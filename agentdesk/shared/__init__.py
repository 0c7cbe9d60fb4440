"""
Shared Kernel Module
====================

This module contains shared infrastructure used across all bounded contexts
(Chat and Tickets).

Architecture Pattern: Modular Monolith
- Each module (chat, tickets) is a bounded context
- Shared kernel contains only generic infrastructure
- Domain models live within each module

DO NOT add chat or ticket business logic to the shared kernel.
"""

__version__ = "1.0.0"
