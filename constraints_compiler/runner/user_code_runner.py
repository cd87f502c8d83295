"""
Compile and execute constraint snippets.

A request passes through four stages, stopping at the first that fails:

1. every bundle unit and the wrapped snippet must parse
2. the snippet and every per-request unit must respect the sandbox
   import/attribute policy
3. the whole bundle must type-check
4. the snippet runs in a sandbox process under a deadline

Stages 1-3 and a missed deadline produce diagnostics (``Err``). A
runtime error raised by user code is raised as ``UserCodeRuntimeError``.
"""

import asyncio
from collections.abc import Sequence

from ..bundle.source_bundle import LIBRARY_FILENAMES, SourceFile
from ..core.config import CompilerConfig, SandboxOptions
from ..core.exceptions import SandboxError, UserCodeRuntimeError
from ..core.logging import get_logger, timed_operation
from .diagnostics import Diagnostic, timeout_diagnostic
from .results import Err, Ok, Result, UserCodeArgument, UserCodeValue
from .sandbox import SandboxRequest, run_sandboxed
from .static_checks import (
    check_library_syntax,
    check_sandbox_policy,
    check_unit_policy,
    parse_user_module,
)
from .type_checker import TypeChecker
from .user_module import ENTRYPOINT, build_user_module

logger = get_logger(__name__)


def _request_units(sources: Sequence[SourceFile]) -> list[SourceFile]:
    """Units that arrived with the request rather than shipping with the service."""
    return [source for source in sources if source.filename not in LIBRARY_FILENAMES]


class UserCodeRunner:
    """Stateless between calls; one instance serves every request."""

    def __init__(
        self,
        type_checker: TypeChecker,
        *,
        feature_version: tuple[int, int] = (3, 11),
        sandbox: SandboxOptions | None = None,
    ) -> None:
        self.type_checker = type_checker
        self.feature_version = feature_version
        self.sandbox = sandbox or SandboxOptions()

    @classmethod
    def from_config(cls, config: CompilerConfig) -> "UserCodeRunner":
        checker = TypeChecker(
            target=config.compiler_options.target,
            strict=config.type_check.strict,
            cache_dir=config.type_check.cache_dir,
        )
        return cls(checker, feature_version=config.feature_version, sandbox=config.sandbox)

    def close(self) -> None:
        self.type_checker.close()

    def _static_diagnostics(self, sources, user_module):
        diagnostics: list[Diagnostic] = []
        for source in sources:
            diagnostics.extend(check_library_syntax(source, self.feature_version))
        if diagnostics:
            return diagnostics

        tree, diagnostics = parse_user_module(user_module, self.feature_version)
        if tree is None:
            return diagnostics

        allowed = set(self.sandbox.allowed_imports) | {source.module_name for source in sources}
        diagnostics = []
        for source in _request_units(sources):
            diagnostics.extend(check_unit_policy(source, allowed, self.feature_version))
        diagnostics.extend(check_sandbox_policy(tree, user_module, allowed))
        return diagnostics

    async def execute_user_code(
        self,
        user_source: str,
        closure_arguments: Sequence[UserCodeArgument],
        expected_output_type_name: str,
        extra_type_roots: Sequence[str],
        timeout_ms: int,
        additional_source_files: Sequence[SourceFile],
    ) -> Result[UserCodeValue, list[Diagnostic]]:
        """
        Type-check ``user_source`` against the bundle, then run it.

        Args:
            user_source: Body of the constraint function
            closure_arguments: Typed values visible to the snippet
            expected_output_type_name: Name of the type the snippet must return
            extra_type_roots: Additional stub directories for the type checker
            timeout_ms: Execution deadline in milliseconds
            additional_source_files: Library units the snippet is checked against

        Returns:
            ``Ok`` with the produced value, or ``Err`` with diagnostics

        Raises:
            ValueError: on a non-positive timeout or malformed arguments
            UserCodeRuntimeError: if user code raised while running
            TypeCheckerError: if the type checker itself failed
            SandboxError: if the sandbox process died without reporting
        """
        if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int) or timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be a positive integer, got {timeout_ms!r}")

        sources = list(additional_source_files)
        user_module = build_user_module(
            user_source,
            closure_arguments,
            expected_output_type_name,
            [source.module_name for source in sources],
        )

        diagnostics = self._static_diagnostics(sources, user_module)
        if diagnostics:
            return Err(diagnostics)

        with timed_operation(logger, "type check"):
            diagnostics = await asyncio.to_thread(
                self.type_checker.check, sources, user_module, tuple(extra_type_roots)
            )
        if diagnostics:
            logger.debug(f"Type check reported {len(diagnostics)} error(s)")
            return Err(diagnostics)

        request = SandboxRequest(
            modules=tuple((s.module_name, s.filename, s.contents) for s in sources),
            user_module_name=user_module.module_name,
            user_filename=user_module.filename,
            user_source=user_module.source,
            entrypoint=ENTRYPOINT,
            arguments=tuple(argument.value for argument in closure_arguments),
            expected_output_type_name=expected_output_type_name,
            allowed_imports=self.sandbox.allowed_imports,
            memory_limit_mb=self.sandbox.memory_limit_mb,
            restricted_modules=tuple(s.module_name for s in _request_units(sources)),
        )
        with timed_operation(logger, "sandbox run"):
            report = await asyncio.to_thread(run_sandboxed, request, timeout_ms)

        if report is None:
            return Err([timeout_diagnostic(timeout_ms)])
        if report.output:
            logger.debug(f"User code output: {report.output}")
        if not report.ok:
            raise UserCodeRuntimeError(report.error_type, report.message, report.stack)
        if not report.type_name:
            raise SandboxError("sandbox reported success without a value")
        return Ok(
            UserCodeValue(
                type_name=report.type_name,
                ast_node=report.ast_node,
                has_ast_node=report.has_ast_node,
                output=report.output,
            )
        )
