"""
Dependency injection for the API service.
Provides the pipeline orchestrator and reasoning client to route handlers.
"""
from __future__ import annotations

from typing import Optional

from pipeline.orchestrator import IntelOrchestrator
from reasoning.client import ReasoningClient

# Module-level singletons, initialized at startup
_orchestrator: Optional[IntelOrchestrator] = None
_reasoning: Optional[ReasoningClient] = None


def init_dependencies(orchestrator: IntelOrchestrator, reasoning: ReasoningClient) -> None:
    """Initialize module-level singletons. Called once at startup."""
    global _orchestrator, _reasoning
    _orchestrator = orchestrator
    _reasoning = reasoning


def get_orchestrator() -> IntelOrchestrator:
    """FastAPI dependency: returns the shared IntelOrchestrator."""
    if _orchestrator is None:
        raise RuntimeError("IntelOrchestrator not initialized; call init_dependencies first")
    return _orchestrator


def get_reasoning_client() -> ReasoningClient:
    """FastAPI dependency: returns the process-wide ReasoningClient."""
    if _reasoning is None:
        raise RuntimeError("ReasoningClient not initialized; call init_dependencies first")
    return _reasoning
