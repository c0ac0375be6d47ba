"""
Custom validation expressions.

Form authors attach an expression to a field (``validation.customValidation``)
that must be truthy for the answer to be accepted, for example::

    len(trim(value)) >= 3 and not contains(value, "test")
    number(value) <= number(answers["budget"])

Expressions use a small Python-like syntax. Sources are parsed with ``ast``,
checked against a whitelist of node types and functions, and run by a tree
walking interpreter; nothing is ever passed to ``eval``. Available names are
``value`` (the answer being validated), ``answers`` (the whole answer map,
also ``allAnswers`` / ``allData``) and ``true`` / ``false`` / ``null``.
"""

from functools import lru_cache
from typing import Any, Dict, Optional
import ast
import math
import operator
import re

from .conf import get_setting
from .exceptions import ExpressionError, UnsafeExpressionError
from .values import is_empty, to_display_string, to_number


ALLOWED_NODES = (
    ast.Expression,
    ast.BoolOp,
    ast.BinOp,
    ast.UnaryOp,
    ast.Compare,
    ast.IfExp,
    ast.Call,
    ast.Name,
    ast.Load,
    ast.Constant,
    ast.List,
    ast.Tuple,
    ast.Subscript,
    ast.And,
    ast.Or,
    ast.Not,
    ast.USub,
    ast.UAdd,
    ast.Add,
    ast.Sub,
    ast.Mult,
    ast.Div,
    ast.Mod,
    ast.Eq,
    ast.NotEq,
    ast.Gt,
    ast.GtE,
    ast.Lt,
    ast.LtE,
    ast.In,
    ast.NotIn,
)

CONSTANT_TYPES = (str, int, float, bool, type(None))

MAX_DEPTH = 50

NAME_ALIASES = {
    'value': 'value',
    'answers': 'answers',
    'allAnswers': 'answers',
    'allData': 'answers',
}

CONSTANT_NAMES = {
    'true': True,
    'false': False,
    'null': None,
}


def _to_int(value):
    number = to_number(value)
    if math.isnan(number) or math.isinf(number):
        raise ValueError(f"Cannot convert {to_display_string(value)!r} to an integer")
    return int(number)


def _contains(haystack, needle):
    if isinstance(haystack, (list, tuple)):
        return needle in haystack
    if haystack is None:
        return False
    return to_display_string(needle) in to_display_string(haystack)


def _matches(text, pattern):
    return re.search(str(pattern), to_display_string(text)) is not None


def _length(value):
    if value is None:
        return 0
    if isinstance(value, (str, list, tuple, dict)):
        return len(value)
    return len(to_display_string(value))


FUNCTIONS = {
    'len': _length,
    'lower': lambda v: to_display_string(v).lower(),
    'upper': lambda v: to_display_string(v).upper(),
    'trim': lambda v: '' if v is None else to_display_string(v).strip(),
    'str': to_display_string,
    'number': to_number,
    'int': _to_int,
    'abs': abs,
    'min': min,
    'max': max,
    'round': round,
    'is_empty': is_empty,
    'matches': _matches,
    'contains': _contains,
    'starts_with': lambda v, prefix: to_display_string(v).startswith(to_display_string(prefix)),
    'ends_with': lambda v, suffix: to_display_string(v).endswith(to_display_string(suffix)),
}

BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
}

COMPARE_OPERATORS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}

RUNTIME_ERRORS = (
    TypeError,
    ValueError,
    ZeroDivisionError,
    IndexError,
    KeyError,
    OverflowError,
    RecursionError,
    MemoryError,
    re.error,
)


def _check_depth(tree: ast.AST) -> None:
    stack = [(tree, 1)]
    while stack:
        node, depth = stack.pop()
        if depth > MAX_DEPTH:
            raise UnsafeExpressionError(f"Expression is nested more than {MAX_DEPTH} levels deep")
        stack.extend((child, depth + 1) for child in ast.iter_child_nodes(node))


def _check_tree(tree: ast.AST) -> None:
    """Reject any syntax outside the whitelist."""
    _check_depth(tree)

    nodes = list(ast.walk(tree))
    for node in nodes:
        if not isinstance(node, ALLOWED_NODES):
            raise UnsafeExpressionError(f"Unsupported syntax: {type(node).__name__}")

    for node in nodes:
        if isinstance(node, ast.Constant) and not isinstance(node.value, CONSTANT_TYPES):
            raise UnsafeExpressionError(f"Unsupported literal: {node.value!r}")

        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.func.id not in FUNCTIONS:
                name = getattr(node.func, 'id', type(node.func).__name__)
                raise UnsafeExpressionError(f"Function is not allowed: {name}")
            if node.keywords:
                raise UnsafeExpressionError("Keyword arguments are not supported")

        if isinstance(node, ast.Subscript) and isinstance(node.slice, ast.Slice):
            raise UnsafeExpressionError("Slices are not supported")


def _check_names(tree: ast.AST) -> None:
    function_names = {
        id(node.func) for node in ast.walk(tree) if isinstance(node, ast.Call)
    }
    for node in ast.walk(tree):
        if isinstance(node, ast.Name) and id(node) not in function_names:
            if node.id not in NAME_ALIASES and node.id not in CONSTANT_NAMES:
                raise ExpressionError(f"Unknown name: {node.id}")


@lru_cache(maxsize=256)
def _parse(source: str) -> ast.Expression:
    try:
        tree = ast.parse(source.strip(), mode='eval')
    except SyntaxError as e:
        raise ExpressionError(f"Invalid expression syntax: {e.msg}") from e
    except (RecursionError, MemoryError) as e:
        raise UnsafeExpressionError("Expression is too complex") from e

    _check_tree(tree)
    _check_names(tree)
    return tree


def compile_expression(source: str) -> ast.Expression:
    """
    Parse and check an expression.

    Raises:
        ExpressionError: if the source is too long, malformed or uses
            unknown names
        UnsafeExpressionError: if the source uses syntax outside the sandbox
    """
    if not isinstance(source, str) or not source.strip():
        raise ExpressionError("Expression must be a non-empty string")

    max_length = get_setting('MAX_EXPRESSION_LENGTH')
    if len(source) > max_length:
        raise ExpressionError(f"Expression is longer than {max_length} characters")

    return _parse(source)


class _Interpreter(ast.NodeVisitor):
    """Evaluates a checked expression tree."""

    def __init__(self, context: Dict[str, Any]):
        self.context = context

    def generic_visit(self, node):
        raise UnsafeExpressionError(f"Unsupported syntax: {type(node).__name__}")

    def visit_Expression(self, node):
        return self.visit(node.body)

    def visit_Constant(self, node):
        return node.value

    def visit_Name(self, node):
        if node.id in CONSTANT_NAMES:
            return CONSTANT_NAMES[node.id]
        return self.context[NAME_ALIASES[node.id]]

    def visit_List(self, node):
        return [self.visit(element) for element in node.elts]

    def visit_Tuple(self, node):
        return tuple(self.visit(element) for element in node.elts)

    def visit_BoolOp(self, node):
        if isinstance(node.op, ast.And):
            result = True
            for value in node.values:
                result = self.visit(value)
                if not result:
                    return result
            return result

        result = False
        for value in node.values:
            result = self.visit(value)
            if result:
                return result
        return result

    def visit_UnaryOp(self, node):
        operand = self.visit(node.operand)
        if isinstance(node.op, ast.Not):
            return not operand
        if isinstance(node.op, ast.USub):
            return -operand
        return +operand

    def visit_BinOp(self, node):
        left = self.visit(node.left)
        right = self.visit(node.right)
        if isinstance(node.op, ast.Mult) and (
            isinstance(left, (str, list, tuple)) or isinstance(right, (str, list, tuple))
        ):
            raise UnsafeExpressionError("Repeating strings or lists is not allowed")
        if isinstance(node.op, ast.Mod) and isinstance(left, str):
            raise UnsafeExpressionError("String formatting is not allowed")
        return BINARY_OPERATORS[type(node.op)](left, right)

    def visit_Compare(self, node):
        left = self.visit(node.left)
        for op, comparator in zip(node.ops, node.comparators):
            right = self.visit(comparator)
            if not COMPARE_OPERATORS[type(op)](left, right):
                return False
            left = right
        return True

    def visit_IfExp(self, node):
        if self.visit(node.test):
            return self.visit(node.body)
        return self.visit(node.orelse)

    def visit_Subscript(self, node):
        container = self.visit(node.value)
        key = self.visit(node.slice)
        if isinstance(container, dict):
            return container.get(key)
        return container[key]

    def visit_Call(self, node):
        function = FUNCTIONS[node.func.id]
        return function(*[self.visit(arg) for arg in node.args])


def evaluate_expression(source: str, value: Any, answers: Optional[Dict[str, Any]] = None) -> Any:
    """
    Evaluate an expression for one answer.

    Args:
        source: expression text
        value: the answer being validated
        answers: the full answer map

    Returns:
        The expression result (callers test its truthiness)

    Raises:
        ExpressionError: on any parse or evaluation failure
    """
    tree = compile_expression(source)
    interpreter = _Interpreter({'value': value, 'answers': dict(answers or {})})

    try:
        return interpreter.visit(tree)
    except ExpressionError:
        raise
    except RUNTIME_ERRORS as e:
        raise ExpressionError(f"Expression failed: {e}") from e


def check_expression(source: str) -> Optional[str]:
    """Return an error message if the expression cannot be compiled, else None."""
    try:
        compile_expression(source)
    except ExpressionError as e:
        return str(e)
    return None
