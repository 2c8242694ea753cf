"""Predicates for conditional incorporation and tool usage conditions.

A condition is any callable taking a scope mapping and returning a bool.
Textual conditions are supported through :func:`expression`, which parses a
small whitelisted expression grammar with :mod:`ast` and never hands the text
to ``eval``.

Grammar:
    - literals: numbers, strings, True/False/None, lists and tuples of literals
    - names: top-level keys of the scope (``context``, ``params``, ``result``)
    - member access: ``params.priority`` or ``params["priority"]`` on mappings
    - comparisons: ``== != < <= > >= in not in is is not``
    - boolean logic: ``and``, ``or``, ``not``; unary minus
    - ``len(x)``

Example:
    >>> cond = expression("params.depth > 2 and 'risk' in context.tags")
    >>> cond({"params": {"depth": 3}, "context": {"tags": ["risk"]}})
    True
"""
import ast
import logging
import operator
from typing import Any, Callable, Mapping

from ..errors import ValidationError

logger = logging.getLogger(__name__)

Predicate = Callable[[Mapping[str, Any]], bool]

_COMPARATORS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

_FUNCTIONS = {"len": len}


def _member(obj: Any, key: Any) -> Any:
    """Missing keys resolve to None so absent fields compare instead of raising."""
    if isinstance(obj, Mapping):
        return obj.get(key)
    if isinstance(obj, (list, tuple, str)) and isinstance(key, int):
        return obj[key] if -len(obj) <= key < len(obj) else None
    return None


def _check_node(node: ast.AST, source: str):
    """Reject anything outside the grammar at construction time."""
    if isinstance(node, ast.Expression):
        _check_node(node.body, source)
    elif isinstance(node, ast.Constant):
        return
    elif isinstance(node, ast.Name):
        if node.id.startswith("_"):
            raise ValidationError(f"Name {node.id!r} not allowed in condition {source!r}")
    elif isinstance(node, ast.Attribute):
        if node.attr.startswith("_"):
            raise ValidationError(f"Attribute {node.attr!r} not allowed in condition {source!r}")
        _check_node(node.value, source)
    elif isinstance(node, ast.Subscript):
        _check_node(node.value, source)
        _check_node(node.slice, source)
    elif isinstance(node, ast.Compare):
        for op in node.ops:
            if type(op) not in _COMPARATORS:
                raise ValidationError(f"Comparison {type(op).__name__} not allowed in condition {source!r}")
        _check_node(node.left, source)
        for comparator in node.comparators:
            _check_node(comparator, source)
    elif isinstance(node, ast.BoolOp):
        for value in node.values:
            _check_node(value, source)
    elif isinstance(node, ast.UnaryOp):
        if not isinstance(node.op, (ast.Not, ast.USub)):
            raise ValidationError(f"Operator {type(node.op).__name__} not allowed in condition {source!r}")
        _check_node(node.operand, source)
    elif isinstance(node, (ast.List, ast.Tuple)):
        for elt in node.elts:
            _check_node(elt, source)
    elif isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name) or node.func.id not in _FUNCTIONS or node.keywords:
            raise ValidationError(f"Only len(...) may be called in condition {source!r}")
        for arg in node.args:
            _check_node(arg, source)
    else:
        raise ValidationError(f"Unsupported syntax {type(node).__name__} in condition {source!r}")


def _evaluate(node: ast.AST, scope: Mapping[str, Any]) -> Any:
    if isinstance(node, ast.Constant):
        return node.value
    if isinstance(node, ast.Name):
        return scope.get(node.id)
    if isinstance(node, ast.Attribute):
        return _member(_evaluate(node.value, scope), node.attr)
    if isinstance(node, ast.Subscript):
        return _member(_evaluate(node.value, scope), _evaluate(node.slice, scope))
    if isinstance(node, ast.Compare):
        left = _evaluate(node.left, scope)
        for op, comparator in zip(node.ops, node.comparators):
            right = _evaluate(comparator, scope)
            if not _COMPARATORS[type(op)](left, right):
                return False
            left = right
        return True
    if isinstance(node, ast.BoolOp):
        if isinstance(node.op, ast.And):
            value = True
            for sub in node.values:
                value = _evaluate(sub, scope)
                if not value:
                    return value
            return value
        value = False
        for sub in node.values:
            value = _evaluate(sub, scope)
            if value:
                return value
        return value
    if isinstance(node, ast.UnaryOp):
        operand = _evaluate(node.operand, scope)
        return (not operand) if isinstance(node.op, ast.Not) else -operand
    if isinstance(node, ast.List):
        return [_evaluate(elt, scope) for elt in node.elts]
    if isinstance(node, ast.Tuple):
        return tuple(_evaluate(elt, scope) for elt in node.elts)
    if isinstance(node, ast.Call):
        return _FUNCTIONS[node.func.id](*[_evaluate(arg, scope) for arg in node.args])
    raise ValidationError(f"Unsupported syntax {type(node).__name__}")


def expression(source: str) -> Predicate:
    """Compile a textual condition into a predicate over a scope mapping."""
    try:
        tree = ast.parse(source.strip(), mode="eval")
    except SyntaxError as e:
        raise ValidationError(f"Invalid condition {source!r}: {e.msg}") from e
    _check_node(tree, source)

    def predicate(scope: Mapping[str, Any]) -> bool:
        return bool(_evaluate(tree.body, scope))

    predicate.__name__ = f"expression({source!r})"
    predicate.source = source
    return predicate


def holds(condition: Predicate, scope: Mapping[str, Any]) -> bool:
    """Evaluate a condition, treating a raising condition as not satisfied."""
    try:
        return bool(condition(scope))
    except Exception as e:
        name = getattr(condition, "__name__", repr(condition))
        logger.warning(f"Condition {name} failed: {type(e).__name__}: {e}")
        return False
