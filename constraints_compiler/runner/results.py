"""
Tagged result types returned by the user code runner.

``Ok`` and ``Err`` are separate classes so a result can never hold a value
and diagnostics at the same time.
"""

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

from ..core.exceptions import ContractViolationError

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_err(self) -> Any:
        raise ContractViolationError(f"unwrap_err() called on Ok({self.value!r})")


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Failed outcome carrying an error payload."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> Any:
        raise ContractViolationError(f"unwrap() called on Err({self.error!r})")

    def unwrap_err(self) -> E:
        return self.error


Result = Union[Ok[T], Err[E]]


@dataclass(frozen=True, slots=True)
class UserCodeArgument:
    """
    A closure argument handed to user code.

    Attributes:
        name: Parameter name visible to the snippet
        annotation: Type expression used by the type checker
        value: Picklable runtime value
    """

    name: str
    annotation: str
    value: Any = None


@dataclass(frozen=True, slots=True)
class UserCodeValue:
    """
    What user code produced, as seen from outside the sandbox.

    The live object stays in the sandbox process; only its type name and
    structural representation (``ast_node``) come back.
    """

    type_name: str
    ast_node: Any = None
    has_ast_node: bool = False
    output: str = field(default="", compare=False)
