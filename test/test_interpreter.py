"""
Tests for the MiniML evaluators under every operational semantics
"""

import pytest
from expressions import (
  Var, Num, Float, Bool, Unop, Binop, Conditional, Fun, Let, Letrec, Raise, Unassigned, App
)
from environment import Val, Closure, Cell, empty, bind, extend, lookup
from interpreter import (
  Strategy, eval_ast, eval_t, eval_s, eval_d, eval_l, evaluate, EVALUATORS,
  create_interpreter, create_debug_interpreter
)
from error_handling import (
  MiniMLEvalError, MiniMLException, UnboundVariableError, TypeMismatchError,
  NotAFunctionError, UnassignedError, DivisionByZeroError
)


REDUCING = [eval_s, eval_d, eval_l]
ALL = [eval_t, eval_s, eval_d, eval_l]


def factorial_program(n: int):
  """let rec f = fun x -> if x = 0 then 1 else x * f (x - 1) in f n"""
  body = Conditional(
    Binop("=", Var("x"), Num(0)),
    Num(1),
    Binop("*", Var("x"), App(Var("f"), Binop("-", Var("x"), Num(1))))
  )
  return Letrec("f", Fun("x", body), App(Var("f"), Num(n)))


def scoping_program():
  """let x = 1 in let f = fun y -> x in let x = 2 in f 0"""
  return Let("x", Num(1),
             Let("f", Fun("y", Var("x")),
                 Let("x", Num(2),
                     App(Var("f"), Num(0)))))


class TestLiterals:
  """Literals are fixed points under every strategy"""

  @pytest.mark.parametrize("evaluator", ALL)
  @pytest.mark.parametrize("literal", [Num(0), Num(-3), Float(2.5), Bool(True), Bool(False)])
  def test_literal_is_fixed_point(self, evaluator, literal, env):
    assert evaluator(literal, env) == Val(literal)


class TestTrivial:
  """The trivial evaluator wraps its input unchanged"""

  def test_returns_expression_unchanged(self, env):
    exp = Binop("+", Num(2), Num(3))
    assert eval_t(exp, env) == Val(exp)

  def test_idempotent_on_reduced_literal(self, env):
    once = eval_t(Num(4), env)
    assert eval_t(once.expr, env) == once

  def test_does_not_signal_raise(self, env):
    assert eval_t(Raise(), env) == Val(Raise())


class TestArithmetic:
  """Operator evaluation through the recursive core"""

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_addition(self, evaluator, env):
    assert evaluator(Binop("+", Num(2), Num(3)), env) == Val(Num(5))

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_nested_operations(self, evaluator, env):
    exp = Binop("-", Binop("*", Num(4), Num(5)), Unop("~-", Num(2)))
    assert evaluator(exp, env) == Val(Num(22))

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_division_by_zero_fails(self, evaluator, env):
    with pytest.raises(DivisionByZeroError):
      evaluator(Binop("/", Num(5), Num(0)), env)

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_mixed_operands_fail(self, evaluator, env):
    with pytest.raises(TypeMismatchError):
      evaluator(Binop("+", Num(1), Bool(True)), env)

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_unary_mismatch_fails(self, evaluator, env):
    with pytest.raises(TypeMismatchError):
      evaluator(Unop("not", Num(1)), env)

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_float_arithmetic(self, evaluator, env):
    exp = Binop("*.", Float(1.5), Unop("~-.", Float(2.0)))
    assert evaluator(exp, env) == Val(Float(-3.0))


class TestConditionals:
  """Conditional evaluation"""

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_true_branch(self, evaluator, env):
    exp = Conditional(Binop("<", Num(1), Num(2)), Num(10), Num(20))
    assert evaluator(exp, env) == Val(Num(10))

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_false_branch(self, evaluator, env):
    exp = Conditional(Bool(False), Num(10), Num(20))
    assert evaluator(exp, env) == Val(Num(20))

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_only_selected_branch_is_evaluated(self, evaluator, env):
    exp = Conditional(Bool(True), Num(1), Raise())
    assert evaluator(exp, env) == Val(Num(1))

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_non_boolean_guard_fails(self, evaluator, env):
    with pytest.raises(TypeMismatchError):
      evaluator(Conditional(Num(1), Num(2), Num(3)), env)


class TestVariables:
  """Variable lookup and binding"""

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_unbound_variable(self, evaluator, env):
    with pytest.raises(UnboundVariableError):
      evaluator(Var("nope"), env)

  @pytest.mark.parametrize("evaluator", [eval_d, eval_l])
  def test_lookup_in_supplied_environment(self, evaluator, env):
    env = bind(env, "x", Val(Num(9)))
    assert evaluator(Binop("+", Var("x"), Num(1)), env) == Val(Num(10))

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_let(self, evaluator, env):
    exp = Let("x", Num(3), Binop("*", Var("x"), Var("x")))
    assert evaluator(exp, env) == Val(Num(9))

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_nested_let_same_name(self, evaluator, env):
    exp = Let("x", Num(1), Let("x", Binop("+", Var("x"), Num(1)), Var("x")))
    assert evaluator(exp, env) == Val(Num(2))

  @pytest.mark.parametrize("evaluator", [eval_d, eval_l])
  def test_let_does_not_alter_callers_environment(self, evaluator, env):
    env = bind(env, "x", Val(Num(1)))
    evaluator(Let("x", Num(2), Var("x")), env)
    assert lookup(env, "x") == Val(Num(1))


class TestFunctions:
  """Function values and application"""

  def test_fun_is_bare_value_under_substitution_and_dynamic(self, env):
    fun = Fun("x", Var("x"))
    assert eval_s(fun, env) == Val(fun)
    assert eval_d(fun, env) == Val(fun)

  def test_fun_is_closure_under_lexical(self, env):
    fun = Fun("x", Var("x"))
    env = bind(env, "y", Val(Num(1)))
    result = eval_l(fun, env)
    assert result == Closure(fun, env)

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_application(self, evaluator, env):
    exp = App(Fun("x", Binop("+", Var("x"), Num(1))), Num(41))
    assert evaluator(exp, env) == Val(Num(42))

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_curried_application(self, evaluator, env):
    add = Fun("a", Fun("b", Binop("+", Var("a"), Var("b"))))
    exp = App(App(add, Num(2)), Num(3))
    assert evaluator(exp, env) == Val(Num(5))

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_argument_is_evaluated_before_call(self, evaluator, env):
    exp = App(Fun("x", Num(0)), Raise())
    with pytest.raises(MiniMLException):
      evaluator(exp, env)

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_applying_non_function(self, evaluator, env):
    with pytest.raises(NotAFunctionError):
      evaluator(App(Num(5), Num(1)), env)

  def test_lexical_rejects_bare_function_value(self, env):
    env = bind(env, "f", Val(Fun("x", Var("x"))))
    with pytest.raises(NotAFunctionError):
      eval_l(App(Var("f"), Num(1)), env)

  def test_dynamic_rejects_closure(self, env):
    env = bind(env, "f", Closure(Fun("x", Var("x")), empty()))
    with pytest.raises(NotAFunctionError):
      eval_d(App(Var("f"), Num(1)), env)

  def test_substitution_avoids_capture(self, env):
    # let y = 1 in let f = fun x -> y in (fun y -> f 0) 2  ==> 1
    exp = Let("y", Num(1),
              Let("f", Fun("x", Var("y")),
                  App(Fun("y", App(Var("f"), Num(0))), Num(2))))
    assert eval_s(exp, env) == Val(Num(1))


class TestRecursion:
  """let rec under each strategy"""

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_factorial(self, evaluator, env):
    assert evaluator(factorial_program(5), env) == Val(Num(120))

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_factorial_base_case(self, evaluator, env):
    assert evaluator(factorial_program(0), env) == Val(Num(1))

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_non_recursive_letrec(self, evaluator, env):
    exp = Letrec("x", Num(4), Binop("+", Var("x"), Num(1)))
    assert evaluator(exp, env) == Val(Num(5))

  def test_lexical_closure_sees_backpatched_cell(self, env):
    exp = Letrec("f", Fun("n", App(Var("f"), Var("n"))), Var("f"))
    closure = eval_l(exp, env)

    assert isinstance(closure, Closure)
    assert lookup(closure.env, "f") is closure

  @pytest.mark.parametrize("evaluator", [eval_d, eval_l])
  def test_self_reference_in_definition_is_unassigned(self, evaluator, env):
    with pytest.raises(UnassignedError):
      evaluator(Letrec("x", Var("x"), Var("x")), env)

  @pytest.mark.parametrize("evaluator", [eval_d, eval_l])
  def test_mutual_use_of_outer_binding(self, evaluator, env):
    # let rec even = fun n -> if n = 0 then true else not (even (n - 1)) in even 4
    body = Conditional(
      Binop("=", Var("n"), Num(0)),
      Bool(True),
      Unop("not", App(Var("even"), Binop("-", Var("n"), Num(1))))
    )
    exp = Letrec("even", Fun("n", body), App(Var("even"), Num(4)))
    assert evaluator(exp, env) == Val(Bool(True))


class TestScoping:
  """Lexical and dynamic scoping give different answers"""

  def test_lexical_uses_defining_environment(self, env):
    assert eval_l(scoping_program(), env) == Val(Num(1))

  def test_dynamic_uses_calling_environment(self, env):
    assert eval_d(scoping_program(), env) == Val(Num(2))

  def test_substitution_agrees_with_lexical(self, env):
    assert eval_s(scoping_program(), env) == Val(Num(1))

  def test_rebinding_replaces_the_existing_entry(self, env):
    # the inner x occupies the outer x's slot instead of shadowing it
    exp = Let("x", Num(1), Let("y", Num(2), Let("x", Num(3), Fun("z", Var("z")))))
    closure = eval_l(exp, env)
    assert [name for name, _ in closure.env.bindings] == ["x", "y"]
    assert lookup(closure.env, "x") == Val(Num(3))


class TestFailures:
  """Raise and internal errors"""

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_raise_always_signals(self, evaluator, env):
    with pytest.raises(MiniMLException):
      evaluator(Raise(), env)

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_raise_propagates_out_of_nested_evaluation(self, evaluator, env):
    exp = Let("x", Num(1), Binop("+", Var("x"), Raise()))
    with pytest.raises(MiniMLException):
      evaluator(exp, env)

  def test_raise_is_not_an_eval_error(self):
    assert not issubclass(MiniMLException, MiniMLEvalError)

  @pytest.mark.parametrize("evaluator", REDUCING)
  def test_unassigned_is_fatal(self, evaluator, env):
    with pytest.raises(UnassignedError):
      evaluator(Unassigned(), env)

  @pytest.mark.parametrize("evaluator", [eval_d, eval_l])
  def test_unassigned_cell_is_never_returned(self, evaluator, env):
    env = extend(env, "pending", Cell(Val(Unassigned())))
    with pytest.raises(UnassignedError):
      evaluator(Var("pending"), env)


class TestEntryPoints:
  """Strategy selection and factories"""

  def test_evaluate_is_lexical(self, env):
    assert evaluate(scoping_program(), env) == Val(Num(1))

  def test_evaluators_table(self):
    assert EVALUATORS[Strategy.DYNAMIC] is eval_d
    assert set(EVALUATORS) == set(Strategy)

  def test_strategy_from_string(self):
    assert Strategy("substitution") is Strategy.SUBSTITUTION

  def test_eval_ast_with_explicit_strategy(self, env):
    assert eval_ast(scoping_program(), env, Strategy.DYNAMIC) == Val(Num(2))

  @pytest.mark.parametrize("strategy, expected", [
    (Strategy.LEXICAL, 1),
    (Strategy.DYNAMIC, 2),
    ("substitution", 1),
  ])
  def test_interpreter_runs_source(self, strategy, expected):
    interpreter = create_interpreter(strategy)
    source = "let x = 1 in let f = fun y -> x in let x = 2 in f(0)"
    assert interpreter.run(source) == Val(Num(expected))

  def test_interpreter_renders_result(self):
    interpreter = create_interpreter()
    assert interpreter.run_to_string("let x = 3 in fun y -> x") == "Closure(fun y -> x, [x -> 3])"
    assert interpreter.run_to_string("let x = 3 in fun y -> x", printenvp=False) == "fun y -> x"

  def test_debug_interpreter_traces(self, capsys):
    interpreter = create_debug_interpreter(Strategy.DYNAMIC)
    assert interpreter.evaluate(Binop("+", Num(1), Num(2))) == Val(Num(3))

    output = capsys.readouterr().out
    assert "Evaluating [dynamic]: Binop" in output
    assert "Evaluating [dynamic]: Num" in output
