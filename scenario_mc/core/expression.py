"""
Restricted arithmetic expression compiler.

Model expressions are parsed once with :mod:`ast` and turned into a tree of
closures over a positional input vector. Identifiers are resolved at compile
time, so evaluation never touches the expression text again and input names
can never be confused with function names (an input called ``log`` is a
variable; ``log(x)`` is always the function).

Supported grammar::

    expr   := expr ('+' | '-' | '*' | '/') expr | ('+' | '-') expr
            | '(' expr ')' | number | name | 'inputs[' int ']'
            | ('sqrt' | 'exp' | 'log') '(' expr ')' | 'pow(' expr ',' expr ')'

Evaluation is vectorised: every node operates on numpy arrays holding one
value per Monte Carlo draw, and domain violations (``log`` of a non-positive
operand, ``sqrt`` of a negative operand, division by zero, overflow) raise
:class:`EvaluationError` pointing at the first offending draw.
"""

from __future__ import annotations

import ast
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Sequence, Tuple, Union

import numpy as np

from ..utils.numbers import is_integer, is_number
from .validator import ConfigurationError, EvaluationError, validate_input_names

Value = Union[float, np.ndarray]
Evaluator = Callable[[Sequence[np.ndarray]], Value]

POSITIONAL_NAME = "inputs"

# Function name -> arity.
FUNCTIONS: Dict[str, int] = {"sqrt": 1, "exp": 1, "log": 1, "pow": 2}


def _guard(mask: Value, operand: Value, message: str) -> None:
    """Raise EvaluationError for the first draw flagged in ``mask``."""
    if not np.any(mask):
        return
    if np.ndim(mask) == 0:
        raise EvaluationError(message.format(value=float(operand)))
    position = int(np.argmax(mask))
    value = np.broadcast_to(operand, np.shape(mask))[position]
    raise EvaluationError(message.format(value=float(value)), iteration=position)


def _finite(result: Value, label: str) -> Value:
    _guard(~np.isfinite(result), result, f"{label} produced a non-finite result ({{value}})")
    return result


def _add(left: Value, right: Value) -> Value:
    return _finite(np.add(left, right), "addition")


def _subtract(left: Value, right: Value) -> Value:
    return _finite(np.subtract(left, right), "subtraction")


def _multiply(left: Value, right: Value) -> Value:
    return _finite(np.multiply(left, right), "multiplication")


def _divide(left: Value, right: Value) -> Value:
    _guard(np.equal(right, 0.0), right, "division by zero (divisor {value})")
    return _finite(np.divide(left, right), "division")


def _sqrt(operand: Value) -> Value:
    _guard(np.less(operand, 0.0), operand, "sqrt of negative operand {value}")
    return np.sqrt(operand)


def _log(operand: Value) -> Value:
    _guard(np.less_equal(operand, 0.0), operand, "log of non-positive operand {value}")
    return np.log(operand)


def _exp(operand: Value) -> Value:
    return _finite(np.exp(operand), "exp")


def _pow(base: Value, exponent: Value) -> Value:
    fractional = np.not_equal(np.floor(exponent), exponent)
    _guard(
        np.logical_and(np.less(base, 0.0), fractional),
        base,
        "pow of negative base {value} with a fractional exponent",
    )
    _guard(
        np.logical_and(np.equal(base, 0.0), np.less(exponent, 0.0)),
        exponent,
        "pow of zero base with negative exponent {value}",
    )
    return _finite(np.power(base, exponent), "pow")


_BINARY = {
    ast.Add: _add,
    ast.Sub: _subtract,
    ast.Mult: _multiply,
    ast.Div: _divide,
}

_CALLS = {"sqrt": _sqrt, "exp": _exp, "log": _log, "pow": _pow}


def _check_parentheses(expression: str) -> None:
    depth = 0
    for position, char in enumerate(expression):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                raise ConfigurationError(
                    f"Unbalanced parentheses: unexpected ')' at position {position}"
                )
    if depth:
        raise ConfigurationError(f"Unbalanced parentheses: {depth} unclosed '('")


class _Compiler:
    """Turns a validated AST into closures; each visit returns (evaluator, constant)."""

    def __init__(self, input_names: Sequence[str]) -> None:
        self.index = {name: position for position, name in enumerate(input_names)}
        self.count = len(input_names)

    def compile(self, node: ast.AST) -> Tuple[Evaluator, Optional[float]]:
        handler = getattr(self, f"_visit_{type(node).__name__}", None)
        if handler is None:
            raise ConfigurationError(f"Unsupported syntax in expression: {type(node).__name__}")
        return handler(node)

    # ------------------------------------------------------------------ leaves
    def _visit_Constant(self, node: ast.Constant) -> Tuple[Evaluator, Optional[float]]:
        value = node.value
        if not is_number(value):
            raise ConfigurationError(f"Unsupported literal in expression: {value!r}")
        try:
            number = float(value)
        except OverflowError:
            raise ConfigurationError(f"Literal {value!r} is not a finite number") from None
        if not math.isfinite(number):
            raise ConfigurationError(f"Literal {value!r} is not a finite number")
        return (lambda _columns: number), number

    def _visit_Name(self, node: ast.Name) -> Tuple[Evaluator, Optional[float]]:
        position = self.index.get(node.id)
        if position is None:
            if node.id in FUNCTIONS:
                raise ConfigurationError(f"Function {node.id!r} must be called with arguments")
            raise ConfigurationError(f"Unknown identifier in expression: {node.id!r}")
        return (lambda columns: columns[position]), None

    def _visit_Subscript(self, node: ast.Subscript) -> Tuple[Evaluator, Optional[float]]:
        if not isinstance(node.value, ast.Name) or node.value.id != POSITIONAL_NAME:
            raise ConfigurationError("Only 'inputs[<index>]' subscripts are supported")
        index_node = node.slice
        if not isinstance(index_node, ast.Constant) or not is_integer(index_node.value):
            raise ConfigurationError("inputs[...] requires a non-negative integer literal index")
        position = index_node.value
        if not 0 <= position < self.count:
            raise ConfigurationError(
                f"Positional reference inputs[{position}] is out of range "
                f"for {self.count} input(s)"
            )
        return (lambda columns: columns[position]), None

    # --------------------------------------------------------------- operators
    def _visit_BinOp(self, node: ast.BinOp) -> Tuple[Evaluator, Optional[float]]:
        operation = _BINARY.get(type(node.op))
        if operation is None:
            raise ConfigurationError(f"Unsupported operator: {type(node.op).__name__}")
        left, left_const = self.compile(node.left)
        right, right_const = self.compile(node.right)
        if isinstance(node.op, ast.Div) and right_const == 0.0:
            raise ConfigurationError("Division by a constant zero in expression")

        def evaluate(columns: Sequence[np.ndarray]) -> Value:
            return operation(left(columns), right(columns))

        return self._fold(evaluate, left_const, right_const)

    def _visit_UnaryOp(self, node: ast.UnaryOp) -> Tuple[Evaluator, Optional[float]]:
        operand, constant = self.compile(node.operand)
        if isinstance(node.op, ast.UAdd):
            return operand, constant
        if not isinstance(node.op, ast.USub):
            raise ConfigurationError(f"Unsupported unary operator: {type(node.op).__name__}")

        def evaluate(columns: Sequence[np.ndarray]) -> Value:
            return np.negative(operand(columns))

        return self._fold(evaluate, constant)

    def _visit_Call(self, node: ast.Call) -> Tuple[Evaluator, Optional[float]]:
        if not isinstance(node.func, ast.Name) or node.func.id not in FUNCTIONS:
            name = getattr(node.func, "id", type(node.func).__name__)
            raise ConfigurationError(f"Unknown function in expression: {name!r}")
        name = node.func.id
        if node.keywords or any(isinstance(arg, ast.Starred) for arg in node.args):
            raise ConfigurationError(f"{name}() accepts positional arguments only")
        arity = FUNCTIONS[name]
        if len(node.args) != arity:
            raise ConfigurationError(
                f"{name}() takes {arity} argument(s), got {len(node.args)}"
            )
        compiled = [self.compile(arg) for arg in node.args]
        arguments = [evaluator for evaluator, _ in compiled]
        function = _CALLS[name]

        if arity == 1:
            (argument,) = arguments

            def evaluate(columns: Sequence[np.ndarray]) -> Value:
                return function(argument(columns))

        else:
            base, exponent = arguments

            def evaluate(columns: Sequence[np.ndarray]) -> Value:
                return function(base(columns), exponent(columns))

        return self._fold(evaluate, *(constant for _, constant in compiled))

    @staticmethod
    def _fold(
        evaluate: Evaluator, *constants: Optional[float]
    ) -> Tuple[Evaluator, Optional[float]]:
        """Pre-compute subtrees without inputs; failures are left for runtime."""
        if any(constant is None for constant in constants):
            return evaluate, None
        try:
            with np.errstate(all="ignore"):
                value = float(evaluate(()))
        except EvaluationError:
            return evaluate, None
        return (lambda _columns: value), value


@dataclass(frozen=True)
class CompiledExpression:
    """A model expression bound to an ordered set of input names."""

    source: str
    input_names: Tuple[str, ...]
    _evaluator: Evaluator = field(repr=False, compare=False)

    def evaluate(self, inputs: Sequence[float]) -> float:
        """Evaluate the model on a single input vector ordered like ``input_names``."""
        if len(inputs) != len(self.input_names):
            raise ConfigurationError(
                f"Expected {len(self.input_names)} input value(s), got {len(inputs)}"
            )
        columns = [np.asarray([float(value)]) for value in inputs]
        try:
            result = self.evaluate_batch(columns)
        except EvaluationError as exc:
            raise EvaluationError(exc.detail) from None
        return float(result[0])

    __call__ = evaluate

    def evaluate_batch(self, columns: Sequence[np.ndarray]) -> np.ndarray:
        """
        Evaluate the model for many draws at once.

        ``columns[i]`` holds the values of input ``i`` for every draw; all
        columns share the same length. Returns one outcome per draw.
        """
        if len(columns) != len(self.input_names):
            raise ConfigurationError(
                f"Expected {len(self.input_names)} input column(s), got {len(columns)}"
            )
        arrays = [np.asarray(column, dtype=float) for column in columns]
        size = arrays[0].shape[0]
        try:
            with np.errstate(all="ignore"):
                result = _finite(self._evaluator(arrays), "model")
        except EvaluationError as exc:
            if exc.iteration is None:
                raise EvaluationError(exc.detail, iteration=0) from None
            raise
        return np.array(np.broadcast_to(result, (size,)), dtype=float)


def compile_expression(expression: str, input_names: Sequence[str]) -> CompiledExpression:
    """
    Compile ``expression`` over ``input_names``.

    Raises ConfigurationError for syntax errors, unbalanced parentheses,
    unknown identifiers or functions, out-of-range positional references and
    division by a constant zero.
    """
    names = tuple(validate_input_names(input_names))
    if not isinstance(expression, str) or not expression.strip():
        raise ConfigurationError("Model expression must be a non-empty string")
    source = expression.strip()
    _check_parentheses(source)
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as exc:
        raise ConfigurationError(f"Invalid model expression {source!r}: {exc.msg}") from exc
    evaluator, _ = _Compiler(names).compile(tree.body)
    return CompiledExpression(source=source, input_names=names, _evaluator=evaluator)


__all__ = ["CompiledExpression", "FUNCTIONS", "compile_expression"]
