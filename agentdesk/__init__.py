"""AgentDesk: multi-agent support chat service."""

__version__ = "1.0.0"
