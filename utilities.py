"""
Utilities module for the MiniML evaluators
Helpers shared by operator dispatch and the evaluation core
"""

from typing import Any, Callable, Tuple, Type
import math

from expressions import Expr, Bool, exp_to_concrete_string
from environment import Val, Closure, Value
from error_handling import TypeMismatchError, DivisionByZeroError


# ==================== VALUE EXTRACTION UTILITIES ====================

def describe_value(value: Value) -> str:
  """
  Short description of a value for error messages

  Examples:
    describe_value(Val(Num(3))) -> "3"
    describe_value(Closure(Fun('x', Var('x')), env)) -> "closure fun x -> x"
  """
  if isinstance(value, Closure):
    return f"closure {exp_to_concrete_string(value.expr)}"
  return exp_to_concrete_string(value.expr)


def extract_expr(value: Value, context: str) -> Expr:
  """
  Return the expression inside a bare value

  Args:
    value: Evaluated value
    context: Construct being evaluated, for error messages

  Raises:
    TypeMismatchError if value is a closure
  """
  if isinstance(value, Val):
    return value.expr
  raise TypeMismatchError(context, describe_value(value))


def extract_literal(
  value: Value,
  literal_type: Type[Expr],
  context: str
) -> Any:
  """
  Return the Python payload of a literal value of the given kind

  Examples:
    extract_literal(Val(Num(3)), Num, "~-") -> 3
    extract_literal(Val(Bool(True)), Num, "~-") -> raises TypeMismatchError
  """
  if isinstance(value, Val) and isinstance(value.expr, literal_type):
    return value.expr.value
  raise type_mismatch_error(context, literal_type, value)


def literal_kind(value: Value) -> Type[Expr]:
  """Return Num, Float or Bool for a literal value, or the expression's own type"""
  if isinstance(value, Closure):
    return Closure
  return type(value.expr)


# ==================== ERROR MESSAGE BUILDERS ====================

def type_mismatch_error(
  context: str,
  expected: Type[Expr],
  actual: Value
) -> TypeMismatchError:
  """
  Generate type mismatch error

  Args:
    context: Operator or construct name
    expected: Expected literal kind
    actual: Offending value

  Returns:
    TypeMismatchError with formatted message
  """
  return TypeMismatchError(
    f"{context} requires {expected.__name__}",
    describe_value(actual)
  )


def operation_error(
  op: str,
  left: Value,
  right: Value
) -> TypeMismatchError:
  """
  Generate operation error for an unsupported operand pairing

  Returns:
    TypeMismatchError with formatted message
  """
  return TypeMismatchError(
    f"({op})",
    f"{describe_value(left)} and {describe_value(right)}"
  )


# ==================== ARITHMETIC HELPERS ====================

def truncating_div(n1: int, n2: int) -> int:
  """Integer division rounding toward zero"""
  quotient = abs(n1) // abs(n2)
  return quotient if (n1 < 0) == (n2 < 0) else -quotient


def float_power(x: float, y: float) -> float:
  """Real-valued power, raising ValueError outside the real domain"""
  return math.pow(x, y)


# ==================== BINARY OPERATION FACTORIES ====================

def binary_comparison_op(
  op: Callable[[Any, Any], bool],
  op_name: str
) -> Callable[[Any, Any], Expr]:
  """
  Factory for binary comparison operations

  Args:
    op: Python operator function (e.g., operator.lt)
    op_name: Name for error messages

  Returns:
    Function that performs the comparison and returns a Bool expression

  Examples:
    lt = binary_comparison_op(operator.lt, "<")
    lt(1, 2) -> Bool(True)
  """
  def comparison(x: Any, y: Any) -> Expr:
    return Bool(op(x, y))

  comparison.__name__ = f"compare_{op.__name__}"
  comparison.op_name = op_name
  return comparison


def binary_arithmetic_op(
  op: Callable[[Any, Any], Any],
  op_name: str,
  result_type: Type[Expr],
  checks_zero: bool = False
) -> Callable[[Any, Any], Expr]:
  """
  Factory for binary arithmetic operations

  Args:
    op: Python function computing the result (e.g., operator.add)
    op_name: Name for error messages
    result_type: Expression node wrapping the result (Num or Float)
    checks_zero: Whether a zero right operand is a division by zero

  Returns:
    Function that performs the arithmetic operation

  Examples:
    add = binary_arithmetic_op(operator.add, "+", Num)
    add(1, 2) -> Num(3)
  """
  def arithmetic(x: Any, y: Any) -> Expr:
    if checks_zero and y == 0:
      raise DivisionByZeroError(op_name)
    try:
      return result_type(op(x, y))
    except (ValueError, OverflowError) as e:
      raise TypeMismatchError(f"({op_name})", f"{x} and {y} ({e})") from e

  arithmetic.__name__ = f"arith_{getattr(op, '__name__', op_name)}"
  arithmetic.op_name = op_name
  return arithmetic


def unary_op(
  op: Callable[[Any], Any],
  operand_type: Type[Expr]
) -> Tuple[Type[Expr], Callable[[Any], Expr]]:
  """
  Pair an operand kind with a function producing a same-kind result

  Examples:
    unary_op(operator.neg, Num) -> (Num, lambda n: Num(-n))
  """
  def apply(x: Any) -> Expr:
    return operand_type(op(x))

  return operand_type, apply


def int_power(n1: int, n2: int) -> float:
  """Integer operands, float result"""
  return float_power(float(n1), float(n2))

