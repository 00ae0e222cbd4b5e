"""Script execution for page rendering.

Page scripts are restricted Python compiled with RestrictedPython. Each
render gets its own ExecutionContext holding a single globals namespace,
so blocks of one page share variables while separate renders never do.

The only names a script sees besides restricted builtins are ``page``
(read-only metadata) and ``print``, which writes to an output sink
created for the current block alone.
"""

import ast
import logging
import operator
import sys
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from types import FrameType
from typing import Any

from RestrictedPython import (
    RestrictingNodeTransformer,
    compile_restricted_exec,
    limited_builtins,
    safe_builtins,
)
from RestrictedPython.Eval import default_guarded_getitem, default_guarded_getiter
from RestrictedPython.Guards import (
    full_write_guard,
    guarded_iter_unpack_sequence,
    guarded_unpack_sequence,
    safer_getattr,
)

from scriptpages.core.blocks import ScriptBlock
from scriptpages.core.tree import TreeNode

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Error executing script: "
DEFAULT_TIMEOUT = 5.0
SCRIPT_FILENAME_PREFIX = "<script:"

# Builtins that would let a script catch the deadline exception or
# raise process-level exceptions past its block
_WITHHELD_BUILTINS = frozenset({"BaseException", "SystemExit", "KeyboardInterrupt", "GeneratorExit"})

# Pure value builtins missing from RestrictedPython's safe set
_EXTRA_BUILTINS: dict[str, Any] = {
    "all": all,
    "any": any,
    "dict": dict,
    "enumerate": enumerate,
    "frozenset": frozenset,
    "max": max,
    "min": min,
    "reversed": reversed,
    "set": set,
    "sum": sum,
}

_INPLACE_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "+=": operator.iadd,
    "-=": operator.isub,
    "*=": operator.imul,
    "/=": operator.itruediv,
    "//=": operator.ifloordiv,
    "%=": operator.imod,
    "**=": operator.ipow,
    "<<=": operator.ilshift,
    ">>=": operator.irshift,
    "&=": operator.iand,
    "^=": operator.ixor,
    "|=": operator.ior,
}


class ScriptError(BaseException):
    """Base for errors raised into a running script by its context.

    Derives from BaseException so ``except Exception`` in script code
    cannot swallow it.
    """


class ScriptTimeout(ScriptError):
    """Script block ran past its deadline."""


class ScriptCancelled(ScriptError):
    """Render was cancelled while a script block was running."""


class PageScriptPolicy(RestrictingNodeTransformer):
    """RestrictedPython policy with constructs that could outlive a deadline removed."""

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> ast.AST:
        if node.type is None:
            self.error(node, "Bare 'except:' clauses are not allowed.")
        return super().visit_ExceptHandler(node)

    def visit_Try(self, node: ast.Try) -> ast.AST:
        if node.finalbody:
            self.error(node, "'finally' clauses are not allowed.")
        return super().visit_Try(node)


@dataclass(frozen=True)
class PageInfo:
    """Read-only page metadata visible to scripts as ``page``."""

    title: str
    tree: TreeNode | None = None


@dataclass(frozen=True)
class BlockResult:
    """Outcome of running one script block."""

    index: int
    output: str
    error: str | None
    elapsed: float

    @property
    def ok(self) -> bool:
        return self.error is None


class OutputSink:
    """Collects everything one block prints.

    Bound into the script namespace as the ``_print_`` factory that
    RestrictedPython rewrites ``print`` calls to use.
    """

    def __init__(self) -> None:
        self._parts: list[str] = []

    def __call__(self) -> str:
        # Backs the RestrictedPython ``printed`` name
        return self.getvalue()

    def write(self, text: str) -> None:
        self._parts.append(text)

    def _call_print(self, *objects: object, **kwargs: Any) -> None:
        if "file" in kwargs:
            raise TypeError("print() in page scripts does not accept 'file'")
        kwargs.pop("flush", None)
        print(*objects, file=self, **kwargs)

    def getvalue(self) -> str:
        return "".join(self._parts)


def _inplacevar(op: str, x: Any, y: Any) -> Any:
    try:
        fn = _INPLACE_OPERATORS[op]
    except KeyError:
        raise SyntaxError(f"Unsupported in-place operator: {op}") from None
    return fn(x, y)


def _apply(f: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    return f(*args, **kwargs)


def _build_builtins() -> dict[str, Any]:
    builtins = {k: v for k, v in safe_builtins.items() if k not in _WITHHELD_BUILTINS}
    builtins.update(limited_builtins)
    builtins.update(_EXTRA_BUILTINS)
    return builtins


def _strip_line_terminator(text: str) -> str:
    if text.endswith("\r\n"):
        return text[:-2]
    if text.endswith("\n"):
        return text[:-1]
    return text


class ExecutionContext:
    """Interpreter state for exactly one render call.

    Not thread-safe except for cancel(): a context belongs to the task
    rendering one page and must never be shared with another render.
    """

    def __init__(
        self,
        title: str,
        *,
        timeout: float | None = DEFAULT_TIMEOUT,
        tree: TreeNode | None = None,
    ) -> None:
        """Initialize a fresh interpreter namespace.

        Args:
            title: Title of the page being rendered, exposed as ``page.title``
            timeout: Per-block wall-clock budget in seconds; None or 0 disables it
            tree: Optional document tree exposed as ``page.tree``
        """
        self._page = PageInfo(title=title, tree=tree)
        self._timeout = timeout or None
        self._cancelled = threading.Event()
        self._namespace: dict[str, Any] = {
            "__builtins__": _build_builtins(),
            "__name__": "page_script",
            "__metaclass__": type,
            "_getattr_": safer_getattr,
            "_getitem_": default_guarded_getitem,
            "_getiter_": default_guarded_getiter,
            "_iter_unpack_sequence_": guarded_iter_unpack_sequence,
            "_unpack_sequence_": guarded_unpack_sequence,
            "_write_": full_write_guard,
            "_inplacevar_": _inplacevar,
            "_apply_": _apply,
            "page": self._page,
        }

    @property
    def page(self) -> PageInfo:
        return self._page

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Stop the running block at its next line and skip remaining blocks.

        Safe to call from any thread.
        """
        self._cancelled.set()

    def lookup(self, name: str) -> Any:
        """Return a script global by name (KeyError if unbound)."""
        return self._namespace[name]

    def run_all(self, blocks: Iterable[ScriptBlock]) -> list[BlockResult]:
        """Run blocks sequentially in the order given."""
        return [self.run(block) for block in blocks]

    def run(self, block: ScriptBlock) -> BlockResult:
        """Execute one block against the shared namespace.

        Never raises for script failures; they come back as a BlockResult
        whose output is a diagnostic string.
        """
        started = time.perf_counter()
        try:
            output = self._execute(block)
        except (ScriptError, Exception) as e:
            return self._failure(block, f"{type(e).__name__}: {e}", started)
        except BaseException as e:
            # Process-level exceptions from script code stay inside the block
            return self._failure(block, f"{type(e).__name__}: {e}", started)

        elapsed = time.perf_counter() - started
        logger.debug(f"Script block {block.index} of {self._page.title!r} ran in {elapsed:.4f}s")
        return BlockResult(index=block.index, output=output, error=None, elapsed=elapsed)

    def _execute(self, block: ScriptBlock) -> str:
        if self.cancelled:
            raise ScriptCancelled("render was cancelled")

        filename = f"{SCRIPT_FILENAME_PREFIX}{block.index}>"
        result = compile_restricted_exec(block.source, filename=filename, policy=PageScriptPolicy)
        if result.errors:
            raise SyntaxError("; ".join(result.errors))

        sink = OutputSink()
        self._namespace["_print_"] = lambda _getattr=None: sink
        try:
            with self._deadline():
                exec(result.code, self._namespace)
        finally:
            self._namespace.pop("_print_", None)
            self._namespace.pop("_print", None)

        return _strip_line_terminator(sink.getvalue())

    def _failure(self, block: ScriptBlock, detail: str, started: float) -> BlockResult:
        elapsed = time.perf_counter() - started
        logger.warning(f"Script block {block.index} of {self._page.title!r} failed: {detail}")
        return BlockResult(
            index=block.index,
            output=f"{ERROR_PREFIX}{detail}",
            error=detail,
            elapsed=elapsed,
        )

    def _deadline(self) -> "_Deadline":
        return _Deadline(self._timeout, self._cancelled)


class _Deadline:
    """Thread-local trace hook that interrupts script code cooperatively.

    Only frames compiled from page scripts are traced; the check runs on
    every line event, so C-level calls are not interrupted mid-call.
    """

    def __init__(self, timeout: float | None, cancelled: threading.Event) -> None:
        self._timeout = timeout
        self._cancelled = cancelled
        self._expires_at: float | None = None
        self._previous: Any = None

    def __enter__(self) -> "_Deadline":
        if self._timeout is not None:
            self._expires_at = time.monotonic() + self._timeout
        self._previous = sys.gettrace()
        sys.settrace(self._trace_calls)
        return self

    def __exit__(self, *exc_info: object) -> None:
        sys.settrace(self._previous)

    def _trace_calls(self, frame: FrameType, event: str, arg: object) -> Any:
        if event != "call" or not frame.f_code.co_filename.startswith(SCRIPT_FILENAME_PREFIX):
            return None
        self._check()
        return self._trace_lines

    def _trace_lines(self, frame: FrameType, event: str, arg: object) -> Any:
        if event == "line":
            self._check()
        return self._trace_lines

    def _check(self) -> None:
        if self._cancelled.is_set():
            raise ScriptCancelled("render was cancelled")
        if self._expires_at is not None and time.monotonic() > self._expires_at:
            raise ScriptTimeout(f"exceeded {self._timeout:g}s execution budget")
