"""Knowledge agent package."""

from .config import AgentConfig, ChunkingConfig, RetrievalConfig

__all__ = ["AgentConfig", "ChunkingConfig", "RetrievalConfig"]
