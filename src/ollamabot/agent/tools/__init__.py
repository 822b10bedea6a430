"""Tool system for the chat bot.

Provides:
- Tool registry with the built-in clock tool
- Web search and web fetch tools
- Bounded-concurrency page fetching
- Sandboxed Python evaluation
"""

from .defaults import create_default_registry
from .fetch_coordinator import FetchCoordinator, FetchedPage, FetchRequest
from .python_eval import run_python, run_python_tool
from .registry import ToolRegistry, get_current_time
from .web import WebTools

__all__ = [
    "create_default_registry",
    "FetchCoordinator",
    "FetchedPage",
    "FetchRequest",
    "run_python",
    "run_python_tool",
    "ToolRegistry",
    "get_current_time",
    "WebTools",
]
