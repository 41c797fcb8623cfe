"""
MiniML Environments and Values
Environments map names to shared mutable cells; values are bare expressions
or closures pairing a function with the environment it was defined in
"""

from typing import Any, Optional, Set, Tuple, Union
from dataclasses import dataclass

from expressions import Expr, Fun, exp_to_concrete_string
from error_handling import UnboundVariableError


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass(eq=False)
class Cell:
  """Shared storage for one value.

  Environments hold cells rather than values so that a letrec can bind a
  name first and backpatch its value afterwards, with every environment
  (and closure) sharing the cell observing the write.
  """
  value: Any

  def get(self) -> 'Value':
    return self.value

  def set(self, value: 'Value') -> None:
    self.value = value

  def __repr__(self) -> str:
    return f"Cell(at {id(self):#x})"


@dataclass(frozen=True)
class Env:
  """Immutable ordered sequence of (name, cell) bindings"""
  bindings: Tuple[Tuple[str, Cell], ...] = ()

  def __str__(self) -> str:
    return env_to_string(self)


@dataclass(frozen=True)
class Val:
  """A fully reduced expression with no environment attached"""
  expr: Expr

  def __str__(self) -> str:
    return value_to_string(self)


@dataclass(frozen=True)
class Closure:
  """A function expression paired with the environment it was created in"""
  expr: Fun
  env: Env

  def __str__(self) -> str:
    return value_to_string(self)


Value = Union[Val, Closure]


# ============================================================================
# ENVIRONMENT OPERATIONS
# ============================================================================

def empty() -> Env:
  """Return the environment with no bindings"""
  return Env()


def close(exp: Fun, env: Env) -> Closure:
  """Create a closure from a function expression and its defining environment"""
  return Closure(exp, env)


def lookup(env: Env, name: str) -> Value:
  """Return the current contents of the cell bound to name"""
  for varid, cell in env.bindings:
    if varid == name:
      return cell.get()
  raise UnboundVariableError(name)


def extend(env: Env, name: str, cell: Cell) -> Env:
  """Return an environment like env but with name bound to cell.

  A name already bound keeps its position and has its cell replaced; an
  unbound name is appended. The cells of all other bindings are shared
  with env, which is itself left untouched.
  """
  bindings = []
  found = False
  for varid, old_cell in env.bindings:
    if varid == name:
      bindings.append((varid, cell))
      found = True
    else:
      bindings.append((varid, old_cell))
  if not found:
    bindings.append((name, cell))
  return Env(tuple(bindings))


def bind(env: Env, name: str, value: Value) -> Env:
  """Shorthand for extending env with a fresh cell holding value"""
  return extend(env, name, Cell(value))


# ============================================================================
# STRINGIFICATION
# ============================================================================

def value_to_string(value: Value, printenvp: bool = True,
                    _seen: Optional[Set[int]] = None) -> str:
  """Return a printable representation of value.

  printenvp selects whether a closure is shown with its environment
  (Closure(<fun>, [<bindings>])) or as its bare function expression.
  """
  if isinstance(value, Val):
    return exp_to_concrete_string(value.expr)
  elif isinstance(value, Closure):
    if not printenvp:
      return exp_to_concrete_string(value.expr)
    return (f"Closure({exp_to_concrete_string(value.expr)}, "
            f"{env_to_string(value.env, printenvp, _seen)})")
  raise TypeError(f"Not a value: {value!r}")


def env_to_string(env: Env, printenvp: bool = True,
                  _seen: Optional[Set[int]] = None) -> str:
  """Return a printable representation of env.

  A cell reached again while it is already being printed (a recursive
  closure whose environment contains itself) is shown as <cycle>.
  """
  if _seen is None:
    _seen = set()

  parts = []
  for varid, cell in env.bindings:
    if id(cell) in _seen:
      parts.append(f"{varid} -> <cycle>")
      continue
    _seen.add(id(cell))
    try:
      parts.append(f"{varid} -> {value_to_string(cell.get(), printenvp, _seen)}")
    finally:
      _seen.discard(id(cell))
  return "[" + ", ".join(parts) + "]"
