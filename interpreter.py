"""
MiniML Interpreter
One recursive evaluation core shared by four operational semantics:
trivial, substitution, dynamically scoped and lexically scoped environments
"""

from typing import Optional, Union
from enum import Enum

from expressions import (
  Expr,
  Var,
  Bool,
  LITERALS,
  Unop,
  Binop,
  Conditional,
  Fun,
  Let,
  Letrec,
  Raise,
  Unassigned,
  App,
  subst,
  exp_to_concrete_string,
)
from environment import (
  Env,
  Val,
  Closure,
  Value,
  Cell,
  empty,
  close,
  lookup,
  extend,
  value_to_string,
)
from operators import apply_unop, apply_binop
from utilities import extract_expr
from error_handling import (
  MiniMLException,
  NotAFunctionError,
  TypeMismatchError,
  UnassignedError,
)
from parsing import create_parser


class Strategy(Enum):
  """The operational semantics an evaluation runs under"""
  TRIVIAL = "trivial"
  SUBSTITUTION = "substitution"
  DYNAMIC = "dynamic"
  LEXICAL = "lexical"


# ============================================================================
# EVALUATION FUNCTIONS
# ============================================================================

def eval_ast(exp: Expr, env: Env, strategy: Strategy, debug: bool = False) -> Value:
  """
  Evaluate an expression in an environment under the given strategy.
  Failures propagate unchanged; nothing is caught or recovered here.
  """
  if debug:
    print(f"Evaluating [{strategy.value}]: {type(exp).__name__} {exp_to_concrete_string(exp)}")

  if strategy is Strategy.TRIVIAL:
    return Val(exp)

  if isinstance(exp, Var):
    return eval_var(exp, env, strategy, debug)
  elif isinstance(exp, LITERALS):
    return Val(exp)
  elif isinstance(exp, Unop):
    return eval_unop(exp, env, strategy, debug)
  elif isinstance(exp, Binop):
    return eval_binop(exp, env, strategy, debug)
  elif isinstance(exp, Conditional):
    return eval_conditional(exp, env, strategy, debug)
  elif isinstance(exp, Fun):
    return eval_fun(exp, env, strategy, debug)
  elif isinstance(exp, Let):
    return eval_let(exp, env, strategy, debug)
  elif isinstance(exp, Letrec):
    return eval_letrec(exp, env, strategy, debug)
  elif isinstance(exp, Raise):
    raise MiniMLException()
  elif isinstance(exp, Unassigned):
    raise UnassignedError()
  elif isinstance(exp, App):
    return eval_app(exp, env, strategy, debug)
  raise TypeError(f"Unknown expression node: {type(exp).__name__}")


def eval_var(exp: Var, env: Env, strategy: Strategy, debug: bool = False) -> Value:
  """Evaluate identifier by looking up its cell's current contents"""
  value = lookup(env, exp.name)
  if isinstance(value, Val) and isinstance(value.expr, Unassigned):
    raise UnassignedError(exp.name)
  return value


def eval_unop(exp: Unop, env: Env, strategy: Strategy, debug: bool = False) -> Value:
  """Evaluate unary operation"""
  operand = eval_ast(exp.operand, env, strategy, debug)
  return apply_unop(exp.op, operand)


def eval_binop(exp: Binop, env: Env, strategy: Strategy, debug: bool = False) -> Value:
  """Evaluate binary operation, left operand first"""
  left = eval_ast(exp.left, env, strategy, debug)
  right = eval_ast(exp.right, env, strategy, debug)
  return apply_binop(exp.op, left, right)


def eval_conditional(exp: Conditional, env: Env, strategy: Strategy, debug: bool = False) -> Value:
  """Evaluate the guard, then only the selected branch"""
  guard = eval_ast(exp.guard, env, strategy, debug)
  if isinstance(guard, Val) and isinstance(guard.expr, Bool):
    branch = exp.then_branch if guard.expr.value else exp.else_branch
    return eval_ast(branch, env, strategy, debug)
  raise TypeMismatchError("if requires Bool", str(guard))


def eval_fun(exp: Fun, env: Env, strategy: Strategy, debug: bool = False) -> Value:
  """Functions are values; only the lexical strategy captures the environment"""
  if strategy is Strategy.LEXICAL:
    return close(exp, env)
  return Val(exp)


def eval_let(exp: Let, env: Env, strategy: Strategy, debug: bool = False) -> Value:
  """Evaluate let binding"""
  if strategy is Strategy.SUBSTITUTION:
    definition = extract_expr(eval_ast(exp.definition, env, strategy, debug), "let")
    return eval_ast(subst(exp.name, definition, exp.body), env, strategy, debug)

  value = eval_ast(exp.definition, env, strategy, debug)
  return eval_ast(exp.body, extend(env, exp.name, Cell(value)), strategy, debug)


def eval_letrec(exp: Letrec, env: Env, strategy: Strategy, debug: bool = False) -> Value:
  """Evaluate recursive let binding"""
  if strategy is Strategy.SUBSTITUTION:
    # unroll one level: each self-reference becomes the whole letrec again
    unrolled = subst(exp.name, Letrec(exp.name, exp.definition, Var(exp.name)), exp.definition)
    definition = extract_expr(eval_ast(unrolled, env, strategy, debug), "let rec")
    return eval_ast(subst(exp.name, definition, exp.body), env, strategy, debug)

  # bind first so the definition can see itself, then backpatch the cell
  cell = Cell(Val(Unassigned()))
  rec_env = extend(env, exp.name, cell)
  cell.set(eval_ast(exp.definition, rec_env, strategy, debug))
  if debug:
    print(f"DEBUG: backpatched {exp.name} := {value_to_string(cell.get(), printenvp=False)}")
  return eval_ast(exp.body, rec_env, strategy, debug)


def eval_app(exp: App, env: Env, strategy: Strategy, debug: bool = False) -> Value:
  """Evaluate function application"""
  callee = eval_ast(exp.callee, env, strategy, debug)

  if strategy is Strategy.LEXICAL:
    if not (isinstance(callee, Closure) and isinstance(callee.expr, Fun)):
      raise NotAFunctionError(callee)
    arg = eval_ast(exp.arg, env, strategy, debug)
    # the body sees the closure's environment, not the caller's
    call_env = extend(callee.env, callee.expr.param, Cell(arg))
    return eval_ast(callee.expr.body, call_env, strategy, debug)

  if not (isinstance(callee, Val) and isinstance(callee.expr, Fun)):
    raise NotAFunctionError(callee)
  fun = callee.expr

  if strategy is Strategy.SUBSTITUTION:
    arg = extract_expr(eval_ast(exp.arg, env, strategy, debug), "application")
    return eval_ast(subst(fun.param, arg, fun.body), env, strategy, debug)

  # dynamic: free variables of the body resolve in the caller's environment
  arg = eval_ast(exp.arg, env, strategy, debug)
  return eval_ast(fun.body, extend(env, fun.param, Cell(arg)), strategy, debug)


# ============================================================================
# ENTRY POINTS
# ============================================================================

def eval_t(exp: Expr, env: Env) -> Value:
  """The trivial evaluator: the expression, unchanged, as a value"""
  return eval_ast(exp, env, Strategy.TRIVIAL)


def eval_s(exp: Expr, env: Env) -> Value:
  """The substitution model evaluator"""
  return eval_ast(exp, env, Strategy.SUBSTITUTION)


def eval_d(exp: Expr, env: Env) -> Value:
  """The dynamically scoped environment model evaluator"""
  return eval_ast(exp, env, Strategy.DYNAMIC)


def eval_l(exp: Expr, env: Env) -> Value:
  """The lexically scoped environment model evaluator"""
  return eval_ast(exp, env, Strategy.LEXICAL)


EVALUATORS = {
  Strategy.TRIVIAL: eval_t,
  Strategy.SUBSTITUTION: eval_s,
  Strategy.DYNAMIC: eval_d,
  Strategy.LEXICAL: eval_l,
}

evaluate = eval_l


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

class MiniMLInterpreter:
  """Parses source text and evaluates it under one fixed strategy"""

  def __init__(self, strategy: Union[Strategy, str] = Strategy.LEXICAL, debug: bool = False):
    self.strategy = Strategy(strategy)
    self.debug = debug
    self.parser = create_parser(debug)

  def evaluate(self, exp: Expr, env: Optional[Env] = None) -> Value:
    """Evaluate an expression tree, in the empty environment by default"""
    if env is None:
      env = empty()
    return eval_ast(exp, env, self.strategy, self.debug)

  def run(self, source: str, env: Optional[Env] = None) -> Value:
    """Parse and evaluate MiniML source text"""
    return self.evaluate(self.parser.parse_expression(source), env)

  def run_to_string(self, source: str, printenvp: bool = True) -> str:
    """Parse, evaluate and render the resulting value"""
    return value_to_string(self.run(source), printenvp)


def create_interpreter(strategy: Union[Strategy, str] = Strategy.LEXICAL,
                       debug: bool = False) -> MiniMLInterpreter:
  """Factory function returning an interpreter"""
  return MiniMLInterpreter(strategy, debug)


def create_debug_interpreter(strategy: Union[Strategy, str] = Strategy.LEXICAL) -> MiniMLInterpreter:
  """Factory function returning a debug interpreter"""
  return create_interpreter(strategy, debug=True)
