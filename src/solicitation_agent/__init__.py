"""Solicitation agent package."""

from .config import AgentConfig, Settings

__all__ = ["AgentConfig", "Settings"]
