"""
Chat Module
===========

Bounded Context for the multi-agent chat assistant.

Responsibilities:
- Classify each incoming message and route it to the matching agent
- Answer product questions from a retrieved knowledge corpus
- Handle customer service requests and file tickets on request
- Keep a short, expiring conversation memory per user
"""

__version__ = "1.0.0"
