"""
MiniML primitive operators
Unary and binary operator tables for each literal kind, plus dispatch
"""

from typing import Callable, Dict, Tuple, Type
import operator

from expressions import Expr, Num, Float, Bool
from environment import Val, Value
from utilities import (
    binary_arithmetic_op,
    binary_comparison_op,
    unary_op,
    extract_literal,
    literal_kind,
    operation_error,
    truncating_div,
    float_power,
    int_power,
)
from error_handling import TypeMismatchError


# ============================================================================
# UNARY OPERATORS
# ============================================================================

UNARY_OPERATORS: Dict[str, Tuple[Type[Expr], Callable]] = {
    '~-': unary_op(operator.neg, Num),
    '~-.': unary_op(operator.neg, Float),
    'not': unary_op(operator.not_, Bool),
}


# ============================================================================
# BINARY OPERATORS
# ============================================================================

# Comparisons apply to any two literals of the same kind
COMPARISON_OPERATORS = {
    '=': binary_comparison_op(operator.eq, "="),
    '<': binary_comparison_op(operator.lt, "<"),
    '>': binary_comparison_op(operator.gt, ">"),
    '<=': binary_comparison_op(operator.le, "<="),
    '>=': binary_comparison_op(operator.ge, ">="),
    '<>': binary_comparison_op(operator.ne, "<>"),
}

INT_OPERATORS = {
    '+': binary_arithmetic_op(operator.add, "+", Num),
    '-': binary_arithmetic_op(operator.sub, "-", Num),
    '*': binary_arithmetic_op(operator.mul, "*", Num),
    '/': binary_arithmetic_op(truncating_div, "/", Num, checks_zero=True),
    '**': binary_arithmetic_op(int_power, "**", Float),
    **COMPARISON_OPERATORS,
}

FLOAT_OPERATORS = {
    '+.': binary_arithmetic_op(operator.add, "+.", Float),
    '-.': binary_arithmetic_op(operator.sub, "-.", Float),
    '*.': binary_arithmetic_op(operator.mul, "*.", Float),
    '/.': binary_arithmetic_op(operator.truediv, "/.", Float, checks_zero=True),
    '**.': binary_arithmetic_op(float_power, "**.", Float),
    **COMPARISON_OPERATORS,
}

# No arithmetic on booleans
BOOL_OPERATORS = dict(COMPARISON_OPERATORS)

OPERATORS_BY_KIND = {
    Num: INT_OPERATORS,
    Float: FLOAT_OPERATORS,
    Bool: BOOL_OPERATORS,
}


# ============================================================================
# DISPATCH
# ============================================================================

def apply_unop(op: str, operand: Value) -> Val:
    """Apply a unary operator to an evaluated operand"""
    if op not in UNARY_OPERATORS:
        raise TypeMismatchError(f"unknown unary operator {op}", str(operand))
    operand_type, func = UNARY_OPERATORS[op]
    return Val(func(extract_literal(operand, operand_type, op)))


def apply_binop(op: str, left: Value, right: Value) -> Val:
    """Apply a binary operator to two evaluated operands of the same kind"""
    kind = literal_kind(left)
    if kind != literal_kind(right) or kind not in OPERATORS_BY_KIND:
        raise operation_error(op, left, right)

    func = OPERATORS_BY_KIND[kind].get(op)
    if func is None:
        raise operation_error(op, left, right)

    return Val(func(left.expr.value, right.expr.value))
