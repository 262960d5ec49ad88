"""
Build Script Sandbox

Executes untrusted, machine-generated build scripts against exactly one
voxel grid. Scripts are written in a restricted subset of Python:

    s = Schematic(16, 8, 16)
    s.Fill(0, 0, 0, 15, 0, 15, "stone")
    s.Set(8, 1, 8, "wool", BlockData.Color.Red)
    s

The script's last statement must be an expression evaluating to the
Schematic to build. The environment exposes only the Schematic constructor,
the BlockData table, the public math functions and a fixed set of pure
builtins. Imports, private/dunder attribute access and introspection are
rejected before execution.

Execution is synchronous and runs to completion. An optional line budget
(max_steps) aborts runaway scripts; without it a script that never finishes
blocks the calling thread.
"""

from contextlib import contextmanager
from types import SimpleNamespace
from typing import Any, Dict, Optional
import ast
import logging
import math
import sys
import traceback

from .block import MATERIALS, Block, block_data_namespace
from .config import BuildProfile
from .errors import (
    MaterialTableNotInitialized,
    SandboxFault,
    SizeLimitExceeded,
    VoxelBuildError,
)
from .grid import VoxelGrid


logger = logging.getLogger(__name__)

SCRIPT_FILENAME = "<build-script>"

FORBIDDEN_NAMES = {
    "exec", "eval", "compile", "__import__", "open", "getattr", "setattr",
    "delattr", "globals", "locals", "vars", "dir", "type", "breakpoint",
    "input", "help", "object", "super", "memoryview",
}

# Attributes that reach frames, code objects or format-string field lookup
FORBIDDEN_ATTRIBUTES = {
    "format", "format_map", "mro", "gi_frame", "gi_code", "gi_yieldfrom",
    "cr_frame", "cr_code", "ag_frame", "ag_code", "f_globals", "f_locals",
    "f_builtins", "f_back", "f_code", "tb_frame", "tb_next",
}

FORBIDDEN_NODES = (
    (ast.Import, "imports are not allowed"),
    (ast.ImportFrom, "imports are not allowed"),
    (ast.Global, "global declarations are not allowed"),
    (ast.Nonlocal, "nonlocal declarations are not allowed"),
    (ast.ClassDef, "class definitions are not allowed"),
    (ast.AsyncFunctionDef, "async functions are not allowed"),
    (ast.AsyncFor, "async loops are not allowed"),
    (ast.AsyncWith, "async blocks are not allowed"),
    (ast.Await, "await is not allowed"),
    (ast.With, "with blocks are not allowed"),
    (ast.Try, "try blocks are not allowed"),
    (ast.TryStar, "try blocks are not allowed"),
    (ast.Match, "match statements are not allowed"),
)


SAFE_BUILTINS = {
    "range": range,
    "len": len,
    "int": int,
    "float": float,
    "abs": abs,
    "min": min,
    "max": max,
    "round": round,
    "sum": sum,
    "divmod": divmod,
    "pow": pow,
    "list": list,
    "dict": dict,
    "tuple": tuple,
    "set": set,
    "str": str,
    "bool": bool,
    "enumerate": enumerate,
    "zip": zip,
    "map": map,
    "filter": filter,
    "sorted": sorted,
    "reversed": reversed,
    "any": any,
    "all": all,
}


def script_builtins() -> Dict[str, Any]:
    """Builtins table for one run, with print routed to the debug log."""
    def script_print(*args, **kwargs):
        logger.debug("script output: %s", " ".join(str(a) for a in args))

    return dict(SAFE_BUILTINS, print=script_print)


def math_namespace() -> SimpleNamespace:
    """Public math functions and constants, built fresh for each run."""
    return SimpleNamespace(
        **{name: getattr(math, name) for name in dir(math) if not name.startswith("_")}
    )


class _StepLimitExceeded(BaseException):
    """Raised from the trace hook; not catchable as Exception by scripts."""


def validate_script(source: str) -> ast.Module:
    """
    Parse a script and reject constructs outside the sandbox language.

    Raises:
        SandboxFault: on syntax errors or forbidden constructs
    """
    try:
        tree = ast.parse(source, filename=SCRIPT_FILENAME)
    except SyntaxError as e:
        raise SandboxFault(f"syntax error on line {e.lineno}: {e.msg}") from None

    for node in ast.walk(tree):
        for node_type, message in FORBIDDEN_NODES:
            if isinstance(node, node_type):
                raise SandboxFault(f"line {node.lineno}: {message}")

        if isinstance(node, ast.Attribute):
            if isinstance(node.ctx, (ast.Store, ast.Del)):
                raise SandboxFault(
                    f"line {node.lineno}: assignment to attribute '{node.attr}' is not allowed"
                )
            if node.attr.startswith("_") or node.attr in FORBIDDEN_ATTRIBUTES:
                raise SandboxFault(
                    f"line {node.lineno}: access to attribute '{node.attr}' is not allowed"
                )

        elif isinstance(node, ast.Name):
            if node.id.startswith("__") or node.id in FORBIDDEN_NAMES:
                raise SandboxFault(
                    f"line {node.lineno}: use of '{node.id}' is not allowed"
                )

    return tree


def _as_int(value: Any, name: str) -> int:
    """Accept ints and integral floats, as the script surface's number type."""
    if isinstance(value, bool):
        raise TypeError(f"{name} must be an integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise TypeError(f"{name} must be an integer, got {value!r}")


class ScriptSchematic:
    """
    The Schematic object handed to build scripts.

    Wraps a VoxelGrid; every method validates its arguments before touching
    the grid. Method names follow the script API.
    """

    __slots__ = ("_grid",)

    def __init__(self, grid: VoxelGrid):
        self._grid = grid

    def _cell(self, value: Any, aux: Any):
        if not isinstance(value, str):
            raise TypeError(f"value must be a string, got {value!r}")
        if aux is not None:
            aux = _as_int(aux, "aux")
            if not 0 <= aux <= 255:
                raise ValueError(f"aux must be between 0 and 255, got {aux}")
        return self._grid.cell_type.parse(value, aux)

    def Set(self, x, y, z, value, aux=None):
        cell = self._cell(value, aux)
        self._grid.set(_as_int(x, "x"), _as_int(y, "y"), _as_int(z, "z"), cell)

    def Fill(self, x1, y1, z1, x2, y2, z2, value, aux=None):
        cell = self._cell(value, aux)
        self._grid.fill(
            _as_int(x1, "x1"), _as_int(y1, "y1"), _as_int(z1, "z1"),
            _as_int(x2, "x2"), _as_int(y2, "y2"), _as_int(z2, "z2"),
            cell
        )

    def xSize(self) -> int:
        return self._grid.size_x

    def ySize(self) -> int:
        return self._grid.size_y

    def zSize(self) -> int:
        return self._grid.size_z

    def __repr__(self):
        return "Schematic({}, {}, {})".format(*self._grid.shape)


class ScriptSandbox:
    """
    Runs one build script and returns the grid it produced.

    Usage:
        sandbox = ScriptSandbox(get_profile("voxel_art"))
        grid = sandbox.run(source)
    """

    def __init__(self, profile: BuildProfile, max_steps: Optional[int] = None):
        """
        Initialize the sandbox.

        Args:
            profile: Build profile selecting cell type and size ceiling
            max_steps: Optional budget of executed script lines; None is unbounded
        """
        if profile.cell_type is Block:
            MATERIALS.require()
        if max_steps is not None and max_steps < 1:
            raise ValueError(f"max_steps must be positive, got {max_steps}")

        self.profile = profile
        self.max_steps = max_steps

    def create_grid(self, x_size, y_size, z_size) -> ScriptSchematic:
        """The Schematic(x, y, z) constructor exposed to scripts."""
        sizes = (
            _as_int(x_size, "xSize"),
            _as_int(y_size, "ySize"),
            _as_int(z_size, "zSize"),
        )
        if any(s < 1 for s in sizes):
            raise ValueError(f"schematic sizes must be at least 1, got {sizes}")

        limit = self.profile.max_axis_size
        if any(s > limit for s in sizes):
            raise SizeLimitExceeded(sizes, limit)

        max_volume = self.profile.max_volume
        if max_volume is not None and sizes[0] * sizes[1] * sizes[2] > max_volume:
            raise SizeLimitExceeded(sizes, limit, max_volume)

        return ScriptSchematic(VoxelGrid(*sizes, cell_type=self.profile.cell_type))

    def environment(self) -> Dict[str, Any]:
        """Fresh globals for a single script run."""
        return {
            "__builtins__": script_builtins(),
            "Schematic": self.create_grid,
            "BlockData": block_data_namespace(),
            "math": math_namespace(),
        }

    def run(self, source: str) -> VoxelGrid:
        """
        Execute a build script.

        Returns:
            The VoxelGrid the script's final expression evaluated to

        Raises:
            SandboxFault: on any validation, runtime or result-shape failure
        """
        tree = validate_script(source)
        if not tree.body:
            raise SandboxFault("script is empty")

        last = tree.body[-1]
        if not isinstance(last, ast.Expr):
            raise SandboxFault(
                f"line {last.lineno}: script must end with an expression evaluating to a Schematic"
            )

        body = compile(ast.Module(body=tree.body[:-1], type_ignores=[]), SCRIPT_FILENAME, "exec")
        final = compile(ast.Expression(body=last.value), SCRIPT_FILENAME, "eval")
        env = self.environment()

        logger.info(
            "running build script (%d lines, profile=%s, max_steps=%s)",
            len(source.splitlines()), self.profile.name, self.max_steps
        )

        try:
            with self._step_budget():
                exec(body, env)
                result = eval(final, env)
        except _StepLimitExceeded:
            logger.warning("build script exceeded %d steps", self.max_steps)
            raise SandboxFault(
                f"script exceeded the step budget of {self.max_steps}"
            ) from None
        except MaterialTableNotInitialized:
            raise
        except Exception as e:
            message = _describe(e)
            logger.warning("build script failed: %s", message)
            raise SandboxFault(message) from e

        if not isinstance(result, ScriptSchematic):
            raise SandboxFault(
                f"script must evaluate to a Schematic, got {type(result).__name__}"
            )

        grid = result._grid
        logger.info("build script produced %dx%dx%d grid", *grid.shape)
        return grid

    @contextmanager
    def _step_budget(self):
        if self.max_steps is None:
            yield
            return

        remaining = [self.max_steps]

        def local_trace(frame, event, arg):
            if event == "line":
                remaining[0] -= 1
                if remaining[0] < 0:
                    raise _StepLimitExceeded()
            return local_trace

        def global_trace(frame, event, arg):
            if frame.f_code.co_filename == SCRIPT_FILENAME:
                return local_trace
            return None

        previous = sys.gettrace()
        sys.settrace(global_trace)
        try:
            yield
        finally:
            sys.settrace(previous)


def _describe(error: BaseException) -> str:
    """Readable fault message with the failing script line when known."""
    if isinstance(error, VoxelBuildError):
        message = str(error)
    else:
        message = f"{type(error).__name__}: {error}"

    frames = [
        f for f in traceback.extract_tb(error.__traceback__)
        if f.filename == SCRIPT_FILENAME
    ]
    if frames:
        return f"line {frames[-1].lineno}: {message}"
    return message
