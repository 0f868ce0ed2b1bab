"""Multi-agent CLI orchestrator."""

__version__ = "0.1.0"
