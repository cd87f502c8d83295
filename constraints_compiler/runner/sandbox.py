"""
Process-isolated execution of a type-checked constraint module.

Each run gets a freshly spawned interpreter, so nothing from the host
process (or from earlier requests) is visible to user code. The parent
waits for a single report on a pipe and terminates the child when the
deadline passes.
"""

import builtins
import contextlib
import importlib.abc
import importlib.util
import io
import multiprocessing
import os
import sys
import traceback
import types
from dataclasses import dataclass, field
from typing import Any

from ..core.exceptions import SandboxError
from ..core.logging import get_logger
from .static_checks import FORBIDDEN_FUNCTIONS

logger = get_logger(__name__)

MAX_CAPTURED_OUTPUT = 20_000
_REAP_GRACE_SECONDS = 1.0

_REMOVED_BUILTINS = (FORBIDDEN_FUNCTIONS - {"__import__"}) | {
    "copyright",
    "credits",
    "exit",
    "help",
    "license",
    "quit",
}
_KEPT_DUNDER_BUILTINS = frozenset({"__build_class__"})

# Names that evaluate or traverse text, which the static policy cannot see.
_HIDDEN_MODULE_ATTRIBUTES = {
    "operator": frozenset({"attrgetter", "methodcaller"}),
    "typing": frozenset({"ForwardRef", "get_type_hints"}),
}

_MISSING = object()


@dataclass
class SandboxRequest:
    """
    Everything the child needs; must stay picklable.

    Attributes:
        modules: ``(module_name, filename, source)`` for each bundle unit
        user_module_name: Import name of the wrapper module
        user_filename: Filename used in tracebacks
        user_source: Wrapper module text
        entrypoint: Function to call inside the wrapper
        arguments: Closure argument values, in parameter order
        expected_output_type_name: Type the return value must have
        allowed_imports: Top-level modules user code may import
        memory_limit_mb: Address-space cap, or None
        restricted_modules: Bundle units that arrived with the request and
            run under the same builtins as user code
    """

    modules: tuple[tuple[str, str, str], ...]
    user_module_name: str
    user_filename: str
    user_source: str
    entrypoint: str
    arguments: tuple[Any, ...] = ()
    expected_output_type_name: str = ""
    allowed_imports: tuple[str, ...] = ()
    memory_limit_mb: int | None = None
    restricted_modules: tuple[str, ...] = ()


@dataclass
class SandboxReport:
    """The single message a sandbox run sends back."""

    ok: bool
    type_name: str = ""
    ast_node: Any = None
    has_ast_node: bool = False
    output: str = ""
    error_type: str = ""
    message: str = ""
    stack: str = field(default="", repr=False)


class BundleImporter(importlib.abc.MetaPathFinder, importlib.abc.Loader):
    """
    Serves bundle units as importable modules from memory.

    Units named in ``restricted`` execute with ``restricted_namespace`` as
    their builtins; the shipped libraries keep the real ones.
    """

    def __init__(
        self,
        modules: tuple[tuple[str, str, str], ...],
        restricted: frozenset[str] = frozenset(),
        restricted_namespace: dict[str, Any] | None = None,
    ) -> None:
        self._modules = {name: (filename, source) for name, filename, source in modules}
        self._restricted = restricted
        self._restricted_namespace = restricted_namespace

    def find_spec(self, fullname, path, target=None):
        if fullname not in self._modules:
            return None
        filename, _ = self._modules[fullname]
        return importlib.util.spec_from_loader(fullname, self, origin=filename)

    def create_module(self, spec):
        return None

    def exec_module(self, module: types.ModuleType) -> None:
        filename, source = self._modules[module.__name__]
        module.__file__ = filename
        if module.__name__ in self._restricted:
            if self._restricted_namespace is None:
                raise ImportError(f"No restricted builtins for request unit {filename}")
            module.__dict__["__builtins__"] = self._restricted_namespace
        code = compile(source, filename, "exec", dont_inherit=True)
        exec(code, module.__dict__)


class ModuleViews:
    """
    Read-only copies of imported modules as user code sees them.

    A view drops dunder attributes, the entries in
    ``_HIDDEN_MODULE_ATTRIBUTES`` and every module attribute except
    submodules of an allowed package, so ``typing.sys`` and friends are
    unreachable.
    """

    def __init__(self, allowed: frozenset[str]) -> None:
        self._allowed = allowed
        self._views: dict[str, types.ModuleType] = {}

    def _exposes(self, parent: str, value: types.ModuleType) -> bool:
        return value.__name__.startswith(parent + ".") and value.__name__.split(".")[0] in self._allowed

    def view(self, module: types.ModuleType) -> types.ModuleType:
        name = module.__name__
        if name in self._views:
            return self._views[name]
        view = types.ModuleType(name, module.__doc__)
        self._views[name] = view

        hidden = _HIDDEN_MODULE_ATTRIBUTES.get(name, frozenset())
        for attr, value in list(vars(module).items()):
            if attr.startswith("__") or attr in hidden:
                continue
            if isinstance(value, types.ModuleType):
                if self._exposes(name, value):
                    setattr(view, attr, self.view(value))
                continue
            setattr(view, attr, value)

        exported = getattr(module, "__all__", None)
        if exported is not None:
            view.__all__ = [attr for attr in exported if attr in vars(view)]
        return view


def _guarded_import(allowed: frozenset[str]):
    real_import = builtins.__import__
    views = ModuleViews(allowed)

    def guarded_import(name, globals=None, locals=None, fromlist=(), level=0):
        if level != 0 or name.split(".")[0] not in allowed:
            raise ImportError(f"Import of '{name}' is not allowed in constraint code")
        return views.view(real_import(name, globals, locals, fromlist, level))

    return guarded_import


def restricted_builtins(allowed_imports: frozenset[str]) -> dict[str, Any]:
    """Builtins for user code: no I/O, no reflection, guarded imports."""
    namespace = {
        name: value
        for name, value in vars(builtins).items()
        if name not in _REMOVED_BUILTINS
        and (not name.startswith("__") or name in _KEPT_DUNDER_BUILTINS)
    }
    namespace["__import__"] = _guarded_import(allowed_imports)
    return namespace


def _detach_stdout() -> None:
    # fd 1 is the parent's protocol channel.
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, 1)
    os.close(devnull)


def _apply_memory_limit(limit_mb: int | None) -> None:
    if not limit_mb:
        return
    try:
        import resource
    except ImportError:
        return
    limit = limit_mb * 1024 * 1024
    _, hard = resource.getrlimit(resource.RLIMIT_AS)
    if hard != resource.RLIM_INFINITY:
        limit = min(limit, hard)
    resource.setrlimit(resource.RLIMIT_AS, (limit, hard))


def _check_output_type(namespace: dict[str, Any], value: Any, expected_name: str) -> None:
    expected = namespace.get(expected_name)
    if isinstance(expected, type):
        matches = isinstance(value, expected)
    else:
        matches = type(value).__name__ == expected_name
    if not matches:
        raise TypeError(f"Constraint code returned {type(value).__name__}, expected {expected_name}")


def _evaluate(request: SandboxRequest) -> SandboxReport:
    module_names = frozenset(name for name, _, _ in request.modules)
    namespace = restricted_builtins(module_names | frozenset(request.allowed_imports))
    sys.meta_path.insert(
        0, BundleImporter(request.modules, frozenset(request.restricted_modules), namespace)
    )

    module = types.ModuleType(request.user_module_name)
    module.__file__ = request.user_filename
    module.__dict__["__builtins__"] = namespace
    sys.modules[request.user_module_name] = module

    code = compile(request.user_source, request.user_filename, "exec", dont_inherit=True)
    exec(code, module.__dict__)
    value = module.__dict__[request.entrypoint](*request.arguments)
    _check_output_type(module.__dict__, value, request.expected_output_type_name)

    ast_node = getattr(value, "ast_node", _MISSING)
    if ast_node is _MISSING:
        return SandboxReport(ok=True, type_name=type(value).__name__)
    return SandboxReport(ok=True, type_name=type(value).__name__, ast_node=ast_node, has_ast_node=True)


def _failure(error: BaseException, output: str = "") -> SandboxReport:
    return SandboxReport(
        ok=False,
        output=output,
        error_type=type(error).__name__,
        message=str(error),
        stack=traceback.format_exc(),
    )


def sandbox_main(conn, request: SandboxRequest) -> None:
    """Child process entry point."""
    _detach_stdout()
    captured = io.StringIO()
    try:
        _apply_memory_limit(request.memory_limit_mb)
        os.environ.clear()
        with contextlib.redirect_stdout(captured), contextlib.redirect_stderr(captured):
            report = _evaluate(request)
    except (Exception, SystemExit) as e:
        report = _failure(e)
    report.output = captured.getvalue()[:MAX_CAPTURED_OUTPUT]

    try:
        conn.send(report)
    except Exception as e:
        # The structural value could not be pickled for transfer.
        conn.send(_failure(e, report.output))
    finally:
        conn.close()


def _reap(process) -> None:
    process.join(0.1)
    if process.is_alive():
        process.terminate()
        process.join(_REAP_GRACE_SECONDS)
    if process.is_alive():
        process.kill()
        process.join()


def run_sandboxed(request: SandboxRequest, timeout_ms: int) -> SandboxReport | None:
    """
    Run ``request`` in a fresh process.

    Blocking; callers on the event loop run it in a worker thread. The
    report is read at most once and the child is always reaped before
    returning, so a run that missed its deadline cannot report later.

    Returns:
        The child's report, or None if the deadline passed first

    Raises:
        SandboxError: if the child exited without reporting
    """
    ctx = multiprocessing.get_context("spawn")
    receiver, sender = ctx.Pipe(duplex=False)
    process = ctx.Process(
        target=sandbox_main,
        args=(sender, request),
        name="constraints-sandbox",
        daemon=True,
    )
    process.start()
    sender.close()
    try:
        if not receiver.poll(timeout_ms / 1000.0):
            logger.info(f"Sandbox run exceeded {timeout_ms} ms; terminating pid {process.pid}")
            return None
        try:
            return receiver.recv()
        except EOFError:
            process.join(_REAP_GRACE_SECONDS)
            raise SandboxError("sandbox exited without reporting", process.exitcode) from None
    finally:
        receiver.close()
        _reap(process)
