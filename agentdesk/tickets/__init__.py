"""
Tickets Module
==============

Bounded Context for support tickets filed from chat conversations.

Responsibilities:
- Persist tickets extracted from customer service replies
- Look up and list tickets
- Move tickets through their status lifecycle
"""

__version__ = "1.0.0"
