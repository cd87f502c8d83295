"""
Constraint AST node definitions.

Nodes are plain dictionaries so a finished constraint serializes to JSON
without any conversion. Keys follow the wire names expected by the
constraint evaluator.
"""

from typing import Any, Dict, List, Literal, TypedDict, Union

__all__ = [
    "ActivityWindowNode",
    "ConstraintNode",
    "DiscreteProfileNode",
    "DiscreteResourceNode",
    "DiscreteTransitionNode",
    "DiscreteValueNode",
    "EndOfNode",
    "ExpressionEqualNode",
    "ExpressionNotEqualNode",
    "ForEachActivityNode",
    "ProfileExpressionNode",
    "RealComparisonNode",
    "RealPlusNode",
    "RealProfileNode",
    "RealRateNode",
    "RealResourceNode",
    "RealTimesNode",
    "RealValueNode",
    "SerializedValue",
    "StartOfNode",
    "ViolationsOfNode",
    "WindowsAndNode",
    "WindowsExpressionNode",
    "WindowsNotNode",
    "WindowsOrNode",
]

SerializedValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]


class RealResourceNode(TypedDict):
    kind: Literal["RealProfileResource"]
    name: str


class RealValueNode(TypedDict):
    kind: Literal["RealProfileValue"]
    value: float


class RealRateNode(TypedDict):
    kind: Literal["RealProfileRate"]
    profile: "RealProfileNode"


class RealTimesNode(TypedDict):
    kind: Literal["RealProfileTimes"]
    profile: "RealProfileNode"
    multiplier: float


class RealPlusNode(TypedDict):
    kind: Literal["RealProfilePlus"]
    left: "RealProfileNode"
    right: "RealProfileNode"


RealProfileNode = Union[RealResourceNode, RealValueNode, RealRateNode, RealTimesNode, RealPlusNode]


class DiscreteResourceNode(TypedDict):
    kind: Literal["DiscreteProfileResource"]
    name: str


class DiscreteValueNode(TypedDict):
    kind: Literal["DiscreteProfileValue"]
    value: SerializedValue


DiscreteProfileNode = Union[DiscreteResourceNode, DiscreteValueNode]

ProfileExpressionNode = Union[RealProfileNode, DiscreteProfileNode]


class RealComparisonNode(TypedDict):
    kind: Literal[
        "RealProfileLessThan",
        "RealProfileLessThanOrEqual",
        "RealProfileGreaterThan",
        "RealProfileGreaterThanOrEqual",
    ]
    left: RealProfileNode
    right: RealProfileNode


class ExpressionEqualNode(TypedDict):
    kind: Literal["ExpressionEqual"]
    left: ProfileExpressionNode
    right: ProfileExpressionNode


class ExpressionNotEqualNode(TypedDict):
    kind: Literal["ExpressionNotEqual"]
    left: ProfileExpressionNode
    right: ProfileExpressionNode


class DiscreteTransitionNode(TypedDict):
    kind: Literal["DiscreteProfileTransition"]
    profile: DiscreteProfileNode
    oldState: SerializedValue
    newState: SerializedValue


class ActivityWindowNode(TypedDict):
    kind: Literal["WindowsExpressionActivityWindow"]
    alias: str


class StartOfNode(TypedDict):
    kind: Literal["WindowsExpressionStartOf"]
    alias: str


class EndOfNode(TypedDict):
    kind: Literal["WindowsExpressionEndOf"]
    alias: str


class WindowsAndNode(TypedDict):
    kind: Literal["WindowsExpressionAnd"]
    expressions: List["WindowsExpressionNode"]


class WindowsOrNode(TypedDict):
    kind: Literal["WindowsExpressionOr"]
    expressions: List["WindowsExpressionNode"]


class WindowsNotNode(TypedDict):
    kind: Literal["WindowsExpressionNot"]
    expression: "WindowsExpressionNode"


WindowsExpressionNode = Union[
    RealComparisonNode,
    ExpressionEqualNode,
    ExpressionNotEqualNode,
    DiscreteTransitionNode,
    ActivityWindowNode,
    StartOfNode,
    EndOfNode,
    WindowsAndNode,
    WindowsOrNode,
    WindowsNotNode,
]


class ViolationsOfNode(TypedDict):
    kind: Literal["ViolationsOf"]
    expression: WindowsExpressionNode


class ForEachActivityNode(TypedDict):
    kind: Literal["ForEachActivity"]
    activityType: str
    alias: str
    expression: "ConstraintNode"


ConstraintNode = Union[ViolationsOfNode, ForEachActivityNode]
