"""
Fluent builder API for constraints.

Every builder object carries its structural representation in ``ast_node``;
that node, not the builder, is what leaves the sandbox.
"""

import itertools
from typing import Callable, Union

import constraints_ast as AST
from mission_model_generated_code import ActivityTypeName, DiscreteResourceName, RealResourceName

__all__ = [
    "ActivityInstance",
    "Constraint",
    "Discrete",
    "Real",
    "Windows",
]

_alias_counter = itertools.count()


def _next_alias(activity_type: str) -> str:
    return f"{activity_type} {next(_alias_counter)}"


class Constraint:
    """A finished constraint: the value a constraint snippet returns."""

    def __init__(self, ast_node: AST.ConstraintNode) -> None:
        self.ast_node: AST.ConstraintNode = ast_node

    @staticmethod
    def for_each_activity(
        activity_type: ActivityTypeName,
        expression: Callable[["ActivityInstance"], "Constraint"],
    ) -> "Constraint":
        """Check ``expression`` once for every instance of ``activity_type``."""
        alias = _next_alias(activity_type)
        body = expression(ActivityInstance(activity_type, alias))
        return Constraint(
            {
                "kind": "ForEachActivity",
                "activityType": activity_type,
                "alias": alias,
                "expression": body.ast_node,
            }
        )


class Windows:
    """A set of time windows."""

    def __init__(self, ast_node: AST.WindowsExpressionNode) -> None:
        self.ast_node: AST.WindowsExpressionNode = ast_node

    @staticmethod
    def during(activity: "ActivityInstance") -> "Windows":
        return activity.window()

    @staticmethod
    def all(*windows: "Windows") -> "Windows":
        return Windows({"kind": "WindowsExpressionAnd", "expressions": [w.ast_node for w in windows]})

    @staticmethod
    def any(*windows: "Windows") -> "Windows":
        return Windows({"kind": "WindowsExpressionOr", "expressions": [w.ast_node for w in windows]})

    def invert(self) -> "Windows":
        return Windows({"kind": "WindowsExpressionNot", "expression": self.ast_node})

    def implies(self, other: "Windows") -> "Windows":
        return Windows.any(self.invert(), other)

    def violations(self) -> Constraint:
        """Report every moment outside these windows as a violation."""
        return Constraint({"kind": "ViolationsOf", "expression": self.ast_node})


RealLike = Union["Real", float, int]


class Real:
    """A real-valued profile."""

    def __init__(self, ast_node: AST.RealProfileNode) -> None:
        self.ast_node: AST.RealProfileNode = ast_node

    @staticmethod
    def resource(name: RealResourceName) -> "Real":
        return Real({"kind": "RealProfileResource", "name": name})

    @staticmethod
    def value(value: float) -> "Real":
        return Real({"kind": "RealProfileValue", "value": float(value)})

    def rate(self) -> "Real":
        return Real({"kind": "RealProfileRate", "profile": self.ast_node})

    def times(self, multiplier: float) -> "Real":
        return Real({"kind": "RealProfileTimes", "profile": self.ast_node, "multiplier": float(multiplier)})

    def plus(self, other: RealLike) -> "Real":
        return Real({"kind": "RealProfilePlus", "left": self.ast_node, "right": _real(other).ast_node})

    def less_than(self, other: RealLike) -> Windows:
        return Windows({"kind": "RealProfileLessThan", "left": self.ast_node, "right": _real(other).ast_node})

    def less_than_or_equal(self, other: RealLike) -> Windows:
        return Windows(
            {"kind": "RealProfileLessThanOrEqual", "left": self.ast_node, "right": _real(other).ast_node}
        )

    def greater_than(self, other: RealLike) -> Windows:
        return Windows({"kind": "RealProfileGreaterThan", "left": self.ast_node, "right": _real(other).ast_node})

    def greater_than_or_equal(self, other: RealLike) -> Windows:
        return Windows(
            {"kind": "RealProfileGreaterThanOrEqual", "left": self.ast_node, "right": _real(other).ast_node}
        )

    def equal(self, other: RealLike) -> Windows:
        return Windows({"kind": "ExpressionEqual", "left": self.ast_node, "right": _real(other).ast_node})

    def not_equal(self, other: RealLike) -> Windows:
        return Windows({"kind": "ExpressionNotEqual", "left": self.ast_node, "right": _real(other).ast_node})


def _real(value: RealLike) -> Real:
    if isinstance(value, Real):
        return value
    return Real.value(value)


class Discrete:
    """A discrete-valued profile."""

    def __init__(self, ast_node: AST.DiscreteProfileNode) -> None:
        self.ast_node: AST.DiscreteProfileNode = ast_node

    @staticmethod
    def resource(name: DiscreteResourceName) -> "Discrete":
        return Discrete({"kind": "DiscreteProfileResource", "name": name})

    @staticmethod
    def value(value: AST.SerializedValue) -> "Discrete":
        return Discrete({"kind": "DiscreteProfileValue", "value": value})

    def equal(self, other: Union["Discrete", AST.SerializedValue]) -> Windows:
        return Windows({"kind": "ExpressionEqual", "left": self.ast_node, "right": _discrete(other).ast_node})

    def not_equal(self, other: Union["Discrete", AST.SerializedValue]) -> Windows:
        return Windows({"kind": "ExpressionNotEqual", "left": self.ast_node, "right": _discrete(other).ast_node})

    def transition(self, old_state: AST.SerializedValue, new_state: AST.SerializedValue) -> Windows:
        return Windows(
            {
                "kind": "DiscreteProfileTransition",
                "profile": self.ast_node,
                "oldState": old_state,
                "newState": new_state,
            }
        )


def _discrete(value: Union[Discrete, AST.SerializedValue]) -> Discrete:
    if isinstance(value, Discrete):
        return value
    return Discrete.value(value)


class ActivityInstance:
    """One instance of an activity type, bound by ``Constraint.for_each_activity``."""

    def __init__(self, activity_type: str, alias: str) -> None:
        self.activity_type = activity_type
        self.alias = alias

    def window(self) -> Windows:
        return Windows({"kind": "WindowsExpressionActivityWindow", "alias": self.alias})

    def start(self) -> Windows:
        return Windows({"kind": "WindowsExpressionStartOf", "alias": self.alias})

    def end(self) -> Windows:
        return Windows({"kind": "WindowsExpressionEndOf", "alias": self.alias})
