"""Orchestrator for the tool-augmented conversation protocol."""

from .agent import (
    EMPTY_RESULTS_BAILOUT,
    NAMELESS_TOOL_BAILOUT,
    AgentOrchestrator,
    OrchestratorConfig,
    is_empty_result,
)
from .invocation import invocation_scope
from .prompt_builder import PromptBuilder
from .tool_executor import ToolExecutor

__all__ = [
    "EMPTY_RESULTS_BAILOUT",
    "NAMELESS_TOOL_BAILOUT",
    "AgentOrchestrator",
    "OrchestratorConfig",
    "is_empty_result",
    "invocation_scope",
    "PromptBuilder",
    "ToolExecutor",
]
