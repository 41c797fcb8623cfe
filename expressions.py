"""
MiniML expressions
Abstract syntax, free variables, capture-avoiding substitution and rendering
"""

from typing import FrozenSet, Iterable
from dataclasses import dataclass
import itertools


# ============================================================================
# ABSTRACT SYNTAX
# ============================================================================

UNOPS = ('~-', '~-.', 'not')

INT_BINOPS = ('+', '-', '*', '/', '**')
FLOAT_BINOPS = ('+.', '-.', '*.', '/.', '**.')
COMPARISONS = ('=', '<', '>', '<=', '>=', '<>')

BINOPS = INT_BINOPS + FLOAT_BINOPS + COMPARISONS


@dataclass(frozen=True)
class Expr:
    """Base of the closed family of MiniML expression nodes"""

    def __str__(self) -> str:
        return exp_to_concrete_string(self)


@dataclass(frozen=True)
class Var(Expr):
    name: str


@dataclass(frozen=True)
class Num(Expr):
    value: int


@dataclass(frozen=True)
class Float(Expr):
    value: float


@dataclass(frozen=True)
class Bool(Expr):
    value: bool


@dataclass(frozen=True)
class Unop(Expr):
    op: str
    operand: Expr


@dataclass(frozen=True)
class Binop(Expr):
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class Conditional(Expr):
    guard: Expr
    then_branch: Expr
    else_branch: Expr


@dataclass(frozen=True)
class Fun(Expr):
    param: str
    body: Expr


@dataclass(frozen=True)
class Let(Expr):
    name: str
    definition: Expr
    body: Expr


@dataclass(frozen=True)
class Letrec(Expr):
    name: str
    definition: Expr
    body: Expr


@dataclass(frozen=True)
class Raise(Expr):
    pass


@dataclass(frozen=True)
class Unassigned(Expr):
    """Placeholder stored in a letrec cell until its definition is evaluated"""
    pass


@dataclass(frozen=True)
class App(Expr):
    callee: Expr
    arg: Expr


LITERALS = (Num, Float, Bool)


# ============================================================================
# FREE VARIABLES AND FRESH NAMES
# ============================================================================

def free_vars(exp: Expr) -> FrozenSet[str]:
    """Return the set of variable names occurring free in exp"""
    if isinstance(exp, Var):
        return frozenset([exp.name])
    elif isinstance(exp, LITERALS + (Raise, Unassigned)):
        return frozenset()
    elif isinstance(exp, Unop):
        return free_vars(exp.operand)
    elif isinstance(exp, Binop):
        return free_vars(exp.left) | free_vars(exp.right)
    elif isinstance(exp, Conditional):
        return (free_vars(exp.guard) | free_vars(exp.then_branch)
                | free_vars(exp.else_branch))
    elif isinstance(exp, Fun):
        return free_vars(exp.body) - {exp.param}
    elif isinstance(exp, Let):
        return free_vars(exp.definition) | (free_vars(exp.body) - {exp.name})
    elif isinstance(exp, Letrec):
        return (free_vars(exp.definition) | free_vars(exp.body)) - {exp.name}
    elif isinstance(exp, App):
        return free_vars(exp.callee) | free_vars(exp.arg)
    raise TypeError(f"Unknown expression node: {type(exp).__name__}")


_fresh_counter = itertools.count()


def new_varname(avoid: Iterable[str] = ()) -> str:
    """Return a fresh variable name of the form varN not present in avoid"""
    avoid = set(avoid)
    while True:
        name = f"var{next(_fresh_counter)}"
        if name not in avoid:
            return name


# ============================================================================
# SUBSTITUTION
# ============================================================================

def subst(var_name: str, repl: Expr, exp: Expr) -> Expr:
    """Substitute repl for free occurrences of var_name in exp.

    Binders that would capture a free variable of repl are renamed to a
    fresh variable first, so the result never changes what repl refers to.
    """
    def sub(e: Expr) -> Expr:
        return subst(var_name, repl, e)

    def rename(binder: str, *scopes: Expr):
        """Alpha-rename binder in each scope to a name fresh for everything involved"""
        avoid = set(free_vars(repl)) | {var_name}
        for scope in scopes:
            avoid |= free_vars(scope)
        fresh = new_varname(avoid)
        return fresh, [subst(binder, Var(fresh), scope) for scope in scopes]

    if isinstance(exp, Var):
        return repl if exp.name == var_name else exp
    elif isinstance(exp, LITERALS + (Raise, Unassigned)):
        return exp
    elif isinstance(exp, Unop):
        return Unop(exp.op, sub(exp.operand))
    elif isinstance(exp, Binop):
        return Binop(exp.op, sub(exp.left), sub(exp.right))
    elif isinstance(exp, Conditional):
        return Conditional(sub(exp.guard), sub(exp.then_branch), sub(exp.else_branch))
    elif isinstance(exp, App):
        return App(sub(exp.callee), sub(exp.arg))
    elif isinstance(exp, Fun):
        if exp.param == var_name:
            return exp
        if exp.param not in free_vars(repl):
            return Fun(exp.param, sub(exp.body))
        fresh, (body,) = rename(exp.param, exp.body)
        return Fun(fresh, sub(body))
    elif isinstance(exp, Let):
        # the definition is outside the binder's scope
        definition = sub(exp.definition)
        if exp.name == var_name:
            return Let(exp.name, definition, exp.body)
        if exp.name not in free_vars(repl):
            return Let(exp.name, definition, sub(exp.body))
        fresh, (body,) = rename(exp.name, exp.body)
        return Let(fresh, definition, sub(body))
    elif isinstance(exp, Letrec):
        if exp.name == var_name:
            return exp
        if exp.name not in free_vars(repl):
            return Letrec(exp.name, sub(exp.definition), sub(exp.body))
        fresh, (definition, body) = rename(exp.name, exp.definition, exp.body)
        return Letrec(fresh, sub(definition), sub(body))
    raise TypeError(f"Unknown expression node: {type(exp).__name__}")


# ============================================================================
# RENDERING
# ============================================================================

def _is_atomic(exp: Expr) -> bool:
    return isinstance(exp, LITERALS + (Var, Raise, Unassigned))


def _float_to_string(value: float) -> str:
    text = repr(value)
    if text.endswith('.0'):
        return text[:-1]
    return text


def exp_to_concrete_string(exp: Expr) -> str:
    """Render exp in MiniML concrete syntax"""
    def paren(e: Expr) -> str:
        text = exp_to_concrete_string(e)
        return text if _is_atomic(e) else f"({text})"

    if isinstance(exp, Var):
        return exp.name
    elif isinstance(exp, Num):
        return str(exp.value)
    elif isinstance(exp, Float):
        return _float_to_string(exp.value)
    elif isinstance(exp, Bool):
        return "true" if exp.value else "false"
    elif isinstance(exp, Unop):
        separator = " " if exp.op == "not" else ""
        return f"{exp.op}{separator}{paren(exp.operand)}"
    elif isinstance(exp, Binop):
        return f"{paren(exp.left)} {exp.op} {paren(exp.right)}"
    elif isinstance(exp, Conditional):
        return (f"if {exp_to_concrete_string(exp.guard)} "
                f"then {exp_to_concrete_string(exp.then_branch)} "
                f"else {exp_to_concrete_string(exp.else_branch)}")
    elif isinstance(exp, Fun):
        return f"fun {exp.param} -> {exp_to_concrete_string(exp.body)}"
    elif isinstance(exp, Let):
        return (f"let {exp.name} = {exp_to_concrete_string(exp.definition)} "
                f"in {exp_to_concrete_string(exp.body)}")
    elif isinstance(exp, Letrec):
        return (f"let rec {exp.name} = {exp_to_concrete_string(exp.definition)} "
                f"in {exp_to_concrete_string(exp.body)}")
    elif isinstance(exp, Raise):
        return "raise"
    elif isinstance(exp, Unassigned):
        return "Unassigned"
    elif isinstance(exp, App):
        return f"{paren(exp.callee)} {paren(exp.arg)}"
    raise TypeError(f"Unknown expression node: {type(exp).__name__}")


def exp_to_abstract_string(exp: Expr) -> str:
    """Render exp as a constructor tree, e.g. Binop(+, Num(1), Var(x))"""
    if isinstance(exp, Var):
        return f"Var({exp.name})"
    elif isinstance(exp, Num):
        return f"Num({exp.value})"
    elif isinstance(exp, Float):
        return f"Float({_float_to_string(exp.value)})"
    elif isinstance(exp, Bool):
        return f"Bool({'true' if exp.value else 'false'})"
    elif isinstance(exp, Unop):
        return f"Unop({exp.op}, {exp_to_abstract_string(exp.operand)})"
    elif isinstance(exp, Binop):
        return (f"Binop({exp.op}, {exp_to_abstract_string(exp.left)}, "
                f"{exp_to_abstract_string(exp.right)})")
    elif isinstance(exp, Conditional):
        return (f"Conditional({exp_to_abstract_string(exp.guard)}, "
                f"{exp_to_abstract_string(exp.then_branch)}, "
                f"{exp_to_abstract_string(exp.else_branch)})")
    elif isinstance(exp, Fun):
        return f"Fun({exp.param}, {exp_to_abstract_string(exp.body)})"
    elif isinstance(exp, Let):
        return (f"Let({exp.name}, {exp_to_abstract_string(exp.definition)}, "
                f"{exp_to_abstract_string(exp.body)})")
    elif isinstance(exp, Letrec):
        return (f"Letrec({exp.name}, {exp_to_abstract_string(exp.definition)}, "
                f"{exp_to_abstract_string(exp.body)})")
    elif isinstance(exp, Raise):
        return "Raise"
    elif isinstance(exp, Unassigned):
        return "Unassigned"
    elif isinstance(exp, App):
        return f"App({exp_to_abstract_string(exp.callee)}, {exp_to_abstract_string(exp.arg)})"
    raise TypeError(f"Unknown expression node: {type(exp).__name__}")
