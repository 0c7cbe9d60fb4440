"""
Infrastructure Layer
=====================

Low-level technical concerns shared by every module:
- Logging setup and correlation ID propagation
"""
