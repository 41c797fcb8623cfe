"""
Error handling for the MiniML front-end and evaluators
Runtime faults, the object-language exception, and parse errors
"""

from typing import Any, List, Optional
from pyparsing import ParseException
import re


# ============================================================================
# EVALUATION ERRORS
# ============================================================================

class MiniMLEvalError(Exception):
    """Runtime fault raised by an evaluator (a host-level error)"""
    pass


class UnboundVariableError(MiniMLEvalError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unbound variable {name}")


class TypeMismatchError(MiniMLEvalError):
    """An operator or construct received an operand of the wrong kind"""
    def __init__(self, context: str, operand: str):
        self.context = context
        self.operand = operand
        super().__init__(f"{context}: unsupported operand {operand}")


class NotAFunctionError(MiniMLEvalError):
    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Not a function: {value}")


class UnassignedError(MiniMLEvalError):
    """The letrec placeholder was evaluated before being backpatched"""
    def __init__(self, name: Optional[str] = None):
        self.name = name
        if name:
            super().__init__(f"Unassigned: {name} used before its definition was evaluated")
        else:
            super().__init__("Unassigned")


class DivisionByZeroError(MiniMLEvalError):
    def __init__(self, op: str):
        self.op = op
        super().__init__(f"Division by zero in ({op})")


class MiniMLException(Exception):
    """The object language's own exception, signalled by `raise`.

    Kept outside the MiniMLEvalError hierarchy so that a handler can tell an
    explicit raise apart from an interpreter fault.
    """
    def __init__(self):
        super().__init__("Exception raised")


# ============================================================================
# PARSE ERRORS
# ============================================================================

def describe_expected(exc: ParseException) -> List[str]:
    """What the grammar wanted at the failure point, from pyparsing's message"""
    found = re.search(r"Expected\s+(.+?)(?:,\s+found|\s+\(at|$)", str(exc))
    if found:
        return [found.group(1)]
    return []


def describe_found(source_text: str, line: int, column: int) -> str:
    """A short excerpt of the source at a 1-based line and column"""
    source_lines = source_text.split('\n')
    if not 1 <= line <= len(source_lines):
        return "unknown"
    excerpt = source_lines[line - 1][max(0, column - 1):column + 10].strip()
    return f"'{excerpt}'" if excerpt else "end of input"


class MiniMLParseError(Exception):
    """Raised when source text cannot be turned into an expression"""
    def __init__(self, message: str, location: int = 0, line: int = 0, column: int = 0,
                 expected: Optional[List[str]] = None, got: Optional[str] = None):
        self.message = message
        self.location = location
        self.line = line
        self.column = column
        self.expected = expected or []
        self.got = got
        super().__init__(message)

    def __str__(self) -> str:
        parts = [f"Parse error at line {self.line}, column {self.column}: {self.message}"]
        if self.expected:
            parts.append(f"  Expected: {', '.join(self.expected)}")
        if self.got:
            parts.append(f"  Got: {self.got}")
        return '\n'.join(parts)

    @classmethod
    def from_parse_exception(cls, exc: ParseException, source_text: str) -> 'MiniMLParseError':
        """Convert a pyparsing failure, pointing into source_text"""
        return cls(
            exc.msg,
            location=exc.loc,
            line=exc.lineno,
            column=exc.col,
            expected=describe_expected(exc),
            got=describe_found(source_text, exc.lineno, exc.col),
        )
