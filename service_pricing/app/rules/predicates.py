"""
Predicate language for rule adjustments.

Predicates are JSON trees built from two node kinds:

- ``{"var": "field"}`` (or ``{"var": ["field", default]}``): truthy lookup
  of an answer. Dotted names walk nested answer maps.
- ``{"==": [A, B]}``: deep equality of the resolved operands, where an
  operand is a nested predicate or a bare literal.

Raw trees are parsed into a closed set of node types. Anything the parser
does not recognize becomes an ``Unrecognized`` node, which evaluates to
false, so evaluation is total without relying on exception handling.
"""

from typing import Any, Mapping, Union
from dataclasses import dataclass

from .models import to_number


@dataclass(frozen=True)
class VarRef:
    key: str
    default: Any = None


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Equals:
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Unrecognized:
    raw: Any


Node = Union[VarRef, Literal, Equals, Unrecognized]

_UNRESOLVED = object()


def parse_predicate(raw: Any) -> Node:
    """Parse a raw predicate tree. Never raises."""
    if not isinstance(raw, Mapping) or len(raw) != 1:
        return Unrecognized(raw)

    if "var" in raw:
        return _parse_var(raw["var"], raw)

    if "==" in raw:
        args = raw["=="]
        if isinstance(args, (list, tuple)) and len(args) == 2:
            return Equals(_parse_operand(args[0]), _parse_operand(args[1]))

    return Unrecognized(raw)


def _parse_var(target: Any, raw: Any) -> Node:
    if isinstance(target, (list, tuple)) and 1 <= len(target) <= 2:
        default = target[1] if len(target) == 2 else None
        target = target[0]
    else:
        default = None

    if isinstance(target, bool) or not isinstance(target, (str, int)):
        return Unrecognized(raw)
    return VarRef(str(target), default)


def _parse_operand(raw: Any) -> Node:
    if isinstance(raw, Mapping):
        return parse_predicate(raw)
    return Literal(raw)


def lookup(answers: Any, key: str, default: Any = None) -> Any:
    """Answer for ``key``; dotted keys walk nested maps."""
    if not isinstance(answers, Mapping):
        return default
    if key in answers:
        return answers[key]

    if "." in key:
        value: Any = answers
        for part in key.split("."):
            if isinstance(value, Mapping) and part in value:
                value = value[part]
            else:
                return default
        return value

    return default


def deep_equal(left: Any, right: Any) -> bool:
    """Structural equality.

    Booleans never equal numbers. A numeric string equals the number it
    spells (legacy option keys are always strings), any other string never
    equals a number.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right

    if isinstance(left, str) and isinstance(right, (int, float)):
        return to_number(left) == right
    if isinstance(right, str) and isinstance(left, (int, float)):
        return to_number(right) == left

    if isinstance(left, Mapping) and isinstance(right, Mapping):
        return left.keys() == right.keys() and all(deep_equal(left[k], right[k]) for k in left)

    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return len(left) == len(right) and all(deep_equal(a, b) for a, b in zip(left, right))

    if isinstance(left, (Mapping, list, tuple)) or isinstance(right, (Mapping, list, tuple)):
        return False

    return left == right


def resolve(node: Node, answers: Any) -> Any:
    """Value of an operand node, or ``_UNRESOLVED`` for unrecognized ones."""
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, VarRef):
        return lookup(answers, node.key, node.default)
    if isinstance(node, Equals):
        return _evaluate_node(node, answers)
    return _UNRESOLVED


def _evaluate_node(node: Node, answers: Any) -> bool:
    if isinstance(node, VarRef):
        return bool(lookup(answers, node.key, node.default))

    if isinstance(node, Equals):
        left = resolve(node.left, answers)
        right = resolve(node.right, answers)
        if left is _UNRESOLVED or right is _UNRESOLVED:
            return False
        return deep_equal(left, right)

    return False


def evaluate(predicate: Any, answers: Mapping[str, Any]) -> bool:
    """Evaluate a raw predicate tree (or parsed node) against an answer set."""
    node = predicate if isinstance(predicate, (VarRef, Literal, Equals, Unrecognized)) else parse_predicate(predicate)
    return _evaluate_node(node, answers)
