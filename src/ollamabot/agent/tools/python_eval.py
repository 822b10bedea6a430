"""
Sandboxed Python evaluation tool.

Runs short, deterministic snippets (arithmetic, string and list manipulation,
date math) for the model. Code is checked against a syntax whitelist with
ast, then executed in an isolated interpreter subprocess with restricted
builtins and a wall-clock limit.
"""

from __future__ import annotations

import ast
import asyncio
import logging
import sys
from typing import Any

from ...api.exceptions import ToolExecutionError
from ..config import RUN_PYTHON_TOOL
from ..domain.entities import ToolDefinition, ToolRuntime

logger = logging.getLogger(__name__)

MAX_CODE_CHARS = 10000
MAX_OUTPUT_CHARS = 2000
EXECUTION_TIMEOUT_SECONDS = 2.0

ALLOWED_NODES = (
    ast.Module, ast.Expr, ast.Assign, ast.AugAssign, ast.AnnAssign,
    ast.If, ast.For, ast.While, ast.Break, ast.Continue, ast.Pass,
    ast.FunctionDef, ast.Return, ast.Lambda, ast.arguments, ast.arg,
    ast.Name, ast.Load, ast.Store, ast.Del, ast.Delete, ast.Constant,
    ast.Attribute, ast.Subscript, ast.Slice, ast.Starred, ast.keyword,
    ast.BinOp, ast.UnaryOp, ast.BoolOp, ast.Compare, ast.IfExp,
    ast.Call, ast.List, ast.Tuple, ast.Dict, ast.Set,
    ast.ListComp, ast.SetComp, ast.DictComp, ast.GeneratorExp, ast.comprehension,
    ast.JoinedStr, ast.FormattedValue,
    ast.operator, ast.unaryop, ast.boolop, ast.cmpop,
)

# Frame, code and traceback introspection reachable without underscores
DISALLOWED_ATTRIBUTE_PREFIXES = ("_", "gi_", "cr_", "ag_", "f_", "co_", "tb_")

# str.format fields traverse attributes outside the ast check
DISALLOWED_ATTRIBUTES = frozenset({"format", "format_map", "mro"})

# Runs inside the child interpreter; reads the snippet from stdin
RUNNER = r'''
import ast, contextlib, datetime, io, json, math, statistics, sys
from types import SimpleNamespace

SAFE_BUILTINS = {
    name: getattr(__builtins__, name) if not isinstance(__builtins__, dict) else __builtins__[name]
    for name in (
        "abs", "all", "any", "bin", "bool", "chr", "dict", "divmod", "enumerate",
        "filter", "float", "format", "hex", "int", "isinstance", "len", "list",
        "map", "max", "min", "oct", "ord", "pow", "print", "range", "repr",
        "reversed", "round", "set", "sorted", "str", "sum", "tuple", "zip",
        "ValueError", "TypeError", "ZeroDivisionError",
    )
}


def facade(module, names):
    return SimpleNamespace(**{name: getattr(module, name) for name in names if hasattr(module, name)})


MODULES = {
    "math": facade(math, [name for name in dir(math) if not name.startswith("_")]),
    "statistics": facade(statistics, (
        "fmean", "geometric_mean", "harmonic_mean", "mean", "median", "median_high",
        "median_low", "mode", "multimode", "pstdev", "pvariance", "quantiles",
        "stdev", "variance",
    )),
    "datetime": facade(datetime, ("date", "datetime", "time", "timedelta", "timezone")),
    "json": facade(json, ("dumps", "loads")),
}

source = sys.stdin.read()
tree = ast.parse(source, mode="exec")
final = None
if tree.body and isinstance(tree.body[-1], ast.Expr):
    final = ast.Expression(tree.body.pop().value)

env = {"__builtins__": SAFE_BUILTINS, **MODULES}
buffer = io.StringIO()
with contextlib.redirect_stdout(buffer):
    exec(compile(tree, "<snippet>", "exec"), env)
    value = eval(compile(final, "<snippet>", "eval"), env) if final is not None else None

printed = buffer.getvalue()
sys.stdout.write(printed)
if value is not None:
    sys.stdout.write(repr(value))
'''


def validate_code(code: str) -> None:
    """Reject code that is too long, unparseable or uses disallowed syntax.

    Raises:
        ToolExecutionError: With the reason for rejection
    """
    if len(code) > MAX_CODE_CHARS:
        raise ToolExecutionError(
            f"Code is too long ({len(code)} characters, maximum {MAX_CODE_CHARS})",
            tool_name=RUN_PYTHON_TOOL,
        )
    try:
        tree = ast.parse(code, mode="exec")
    except SyntaxError as e:
        raise ToolExecutionError(f"Syntax error: {e.msg} (line {e.lineno})", tool_name=RUN_PYTHON_TOOL)

    for node in ast.walk(tree):
        if not isinstance(node, ALLOWED_NODES):
            raise ToolExecutionError(
                f"Disallowed syntax: {type(node).__name__}", tool_name=RUN_PYTHON_TOOL
            )
        if isinstance(node, ast.Name) and node.id.startswith("__"):
            raise ToolExecutionError(f"Disallowed name: {node.id}", tool_name=RUN_PYTHON_TOOL)
        if isinstance(node, ast.Attribute) and (
            node.attr.startswith(DISALLOWED_ATTRIBUTE_PREFIXES) or node.attr in DISALLOWED_ATTRIBUTES
        ):
            raise ToolExecutionError(
                f"Disallowed attribute: {node.attr}", tool_name=RUN_PYTHON_TOOL
            )


def _clip(text: str) -> str:
    if len(text) <= MAX_OUTPUT_CHARS:
        return text
    return text[:MAX_OUTPUT_CHARS] + "..."


async def run_python(arguments: dict[str, Any], runtime: ToolRuntime) -> dict[str, str]:
    """Evaluate a snippet and return its printed output and final value."""
    code = str(arguments.get("code") or "").strip()
    if not code:
        raise ToolExecutionError("No code provided", tool_name=RUN_PYTHON_TOOL)
    validate_code(code)

    process = await asyncio.create_subprocess_exec(
        sys.executable, "-I", "-c", RUNNER,
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(code.encode("utf-8")),
            timeout=EXECUTION_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise ToolExecutionError(
            f"Execution timed out after {EXECUTION_TIMEOUT_SECONDS:g} s",
            tool_name=RUN_PYTHON_TOOL,
        )

    if process.returncode != 0:
        lines = stderr.decode("utf-8", errors="replace").strip().splitlines()
        reason = lines[-1] if lines else f"exit status {process.returncode}"
        logger.debug(f"run_python failed: {reason}")
        raise ToolExecutionError(f"Execution failed: {_clip(reason)}", tool_name=RUN_PYTHON_TOOL)

    output = stdout.decode("utf-8", errors="replace")
    return {"output": _clip(output) if output else "(no output)"}


def run_python_tool() -> ToolDefinition:
    return ToolDefinition(
        name=RUN_PYTHON_TOOL,
        description=(
            "Execute a short, deterministic Python snippet (math, string and list "
            "manipulation, date arithmetic). The value of the last expression and "
            "anything printed is returned. No imports, files or network; "
            "math, the statistics averages and spreads, datetime.date/datetime/"
            "time/timedelta/timezone and json.dumps/loads are preloaded."
        ),
        parameters={
            "type": "object",
            "properties": {
                "code": {
                    "type": "string",
                    "description": "Python code to evaluate",
                },
            },
            "required": ["code"],
        },
        handler=run_python,
        timeout_seconds=EXECUTION_TIMEOUT_SECONDS + 3,
    )
