"""
MiniML Parser
Tokenizer and pyparsing grammar turning MiniML source text into expression trees
"""

from typing import List, Any, Optional, Tuple
from dataclasses import dataclass
from functools import reduce
import re

from pyparsing import (
    Forward, Keyword, Literal, MatchFirst, OneOrMore, Optional as PyParsingOptional,
    ParseException, ParserElement, Regex, StringEnd, Suppress, OpAssoc, infix_notation
)

from expressions import (
    Expr, Var, Num, Float, Bool, Unop, Binop, Conditional, Fun, Let, Letrec, Raise, App,
    UNOPS, BINOPS
)
from error_handling import MiniMLParseError

# Enable packrat parsing for performance
ParserElement.enable_packrat()


KEYWORDS = {
    'if', 'in', 'then', 'else', 'let', 'raise', 'rec',
    'true', 'false', 'not', 'fun', 'function',
}

SYMBOLS = {'(', ')', '=', '->', ';;'} | (set(UNOPS) - {'not'}) | set(BINOPS)


@dataclass(frozen=True)
class SourceSpan:
    """Source location of a token or diagnostic"""
    filename: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int
    text: str = ""

    def __str__(self) -> str:
        if self.start_line == self.end_line:
            return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_col}"
        return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_line}:{self.end_col}"


@dataclass(frozen=True)
class Token:
    """MiniML token with source information"""
    type: str
    value: Any
    span: SourceSpan

    def __str__(self) -> str:
        return f"{self.type}({self.value})"


# ============================================================================
# TOKENIZER
# ============================================================================

class MiniMLTokenizer:
    """MiniML tokenizer.

    Whitespace and (* ... *) comments are skipped. Characters that start no
    token are skipped too, each leaving a message in self.diagnostics, so a
    stray character never aborts a scan. The token list always ends with an
    EOF token.
    """

    def __init__(self, filename: str = "<input>", debug: bool = False):
        self.filename = filename
        self.debug = debug
        self.diagnostics: List[str] = []
        self._setup_token_patterns()

    def _setup_token_patterns(self):
        """Setup all token patterns for MiniML"""

        # Comments are delimited and may not span lines
        self.comment_pattern = re.compile(r'\(\*.*?\*\)')
        self.comment_start = '(*'

        self.float_pattern = re.compile(r'\d+\.\d*')
        self.int_pattern = re.compile(r'\d+')
        self.identifier_pattern = re.compile(r'[a-z][A-Za-z0-9_]*')

        # Longest symbols first so '**.' wins over '**' and '*'
        symbols_sorted = sorted(SYMBOLS, key=len, reverse=True)
        self.symbol_pattern = re.compile('|'.join(re.escape(s) for s in symbols_sorted))

    def _diagnose(self, message: str, span: SourceSpan) -> None:
        diagnostic = f"{span}: {message}"
        self.diagnostics.append(diagnostic)
        if self.debug:
            print(f"DEBUG: {diagnostic}")

    def _scan(self, text: str) -> Tuple[List[Token], List[Tuple[int, int, int]]]:
        """Return the tokens of text and the (line index, start, end) spans skipped as junk"""
        tokens = []
        skipped = []

        for line_num, line in enumerate(text.split('\n'), 1):
            pos = 0
            while pos < len(line):
                if line[pos].isspace():
                    pos += 1
                    continue

                if line.startswith(self.comment_start, pos):
                    comment_match = self.comment_pattern.match(line, pos)
                    end = comment_match.end() if comment_match else len(line)
                    if not comment_match:
                        span = SourceSpan(self.filename, line_num, pos + 1, line_num, end + 1, line[pos:])
                        self._diagnose("unterminated comment, skipping rest of line", span)
                    skipped.append((line_num - 1, pos, end))
                    pos = end
                    continue

                token = self._match_token_at_position(line, pos, line_num)
                if token:
                    tokens.append(token)
                    pos += len(token.span.text)
                else:
                    char = line[pos]
                    span = SourceSpan(self.filename, line_num, pos + 1, line_num, pos + 2, char)
                    self._diagnose(f"skipping unrecognized character '{char}'", span)
                    skipped.append((line_num - 1, pos, pos + 1))
                    pos += 1

        return tokens, skipped

    def _match_token_at_position(self, line: str, pos: int, line_num: int) -> Optional[Token]:
        """Match a token at a specific position using priority order"""

        def make_token(token_type: str, value: Any, text: str) -> Token:
            span = SourceSpan(self.filename, line_num, pos + 1, line_num, pos + len(text) + 1, text)
            return Token(token_type, value, span)

        # Priority 1: Numbers (floats before ints so '3.5' is one token)
        float_match = self.float_pattern.match(line, pos)
        if float_match:
            text = float_match.group(0)
            return make_token("FLOAT", float(text), text)

        int_match = self.int_pattern.match(line, pos)
        if int_match:
            text = int_match.group(0)
            return make_token("INT", int(text), text)

        # Priority 2: Symbols (longest match first)
        symbol_match = self.symbol_pattern.match(line, pos)
        if symbol_match:
            text = symbol_match.group(0)
            return make_token("SYMBOL", text, text)

        # Priority 3: Identifiers and keywords
        id_match = self.identifier_pattern.match(line, pos)
        if id_match:
            text = id_match.group(0)
            if text in KEYWORDS:
                return make_token("KEYWORD", text, text)
            return make_token("IDENTIFIER", text, text)

        return None

    def tokenize(self, text: str) -> List[Token]:
        """Tokenize MiniML source code, ending with an EOF token"""
        tokens, _ = self._scan(text)
        lines = text.split('\n')
        end_col = len(lines[-1]) + 1
        tokens.append(Token("EOF", None, SourceSpan(
            self.filename, len(lines), end_col, len(lines), end_col, ""
        )))
        return tokens

    def scrub(self, text: str) -> str:
        """Return text with comments and unrecognized characters blanked out.

        Positions are preserved, so line and column numbers reported while
        parsing the result still point into the original source.
        """
        _, skipped = self._scan(text)
        lines = [list(line) for line in text.split('\n')]
        for line_index, start, end in skipped:
            for i in range(start, end):
                lines[line_index][i] = ' '
        return '\n'.join(''.join(line) for line in lines)


# ============================================================================
# GRAMMAR
# ============================================================================

def _fold_left(tokens) -> Expr:
    """[a, op, b, op, c] -> Binop(op, Binop(op, a, b), c)"""
    items = list(tokens[0])
    result = items[0]
    for i in range(1, len(items), 2):
        result = Binop(items[i], result, items[i + 1])
    return result


def _fold_right(tokens) -> Expr:
    """[a, op, b, op, c] -> Binop(op, a, Binop(op, b, c))"""
    items = list(tokens[0])
    result = items[-1]
    for i in range(len(items) - 2, 0, -2):
        result = Binop(items[i], items[i - 1], result)
    return result


def _make_unop(tokens) -> Expr:
    op, operand = tokens[0]
    return Unop(op, operand)


def _make_application(tokens) -> Expr:
    items = list(tokens)
    return reduce(App, items[1:], items[0])


class MiniMLGrammar:
    """MiniML grammar definition using pyparsing"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self._setup_grammar()

    def _setup_grammar(self):
        """Setup the MiniML expression grammar, loosest-binding forms first"""

        expression = Forward()

        # Keywords
        let_kw = Keyword("let")
        rec_kw = Keyword("rec")
        in_kw = Keyword("in")
        if_kw = Keyword("if")
        then_kw = Keyword("then")
        else_kw = Keyword("else")
        fun_kw = Keyword("function") | Keyword("fun")
        any_keyword = MatchFirst([Keyword(k) for k in sorted(KEYWORDS)])

        # Literals
        float_literal = Regex(r'\d+\.\d*').set_parse_action(lambda t: Float(float(t[0])))
        int_literal = Regex(r'\d+').set_parse_action(lambda t: Num(int(t[0])))
        true_literal = Keyword("true").set_parse_action(lambda t: Bool(True))
        false_literal = Keyword("false").set_parse_action(lambda t: Bool(False))
        raise_expr = Keyword("raise").set_parse_action(lambda t: Raise())

        # Identifiers exclude keywords
        binding_identifier = ~any_keyword + Regex(r'[a-z][A-Za-z0-9_]*')
        value_identifier = binding_identifier.copy().set_parse_action(lambda t: Var(t[0]))

        parenthesized = Suppress("(") + expression + Suppress(")")

        atom = (
            float_literal |
            int_literal |
            true_literal |
            false_literal |
            raise_expr |
            value_identifier |
            parenthesized
        )

        # Application by juxtaposition, left associative
        application = OneOrMore(atom).set_parse_action(_make_application)

        # Operators - exact regexes so '*' never eats the start of '**'
        # and '-' never eats the start of '->'
        power_op = Regex(r'\*\*\.?')
        unary_op = Regex(r'~-\.?') | Keyword("not")
        multiplicative_op = Regex(r'\*\.|/\.|\*(?!\*)|/')
        additive_op = Regex(r'\+\.|\+|-\.|-(?!>)')
        comparison_op = Regex(r'<>|<=|>=|=|<|>')

        operation = infix_notation(application, [
            (power_op, 2, OpAssoc.RIGHT, _fold_right),
            (unary_op, 1, OpAssoc.RIGHT, _make_unop),
            (multiplicative_op, 2, OpAssoc.LEFT, _fold_left),
            (additive_op, 2, OpAssoc.LEFT, _fold_left),
            (comparison_op, 2, OpAssoc.LEFT, _fold_left),
        ])

        # Binding forms extend as far right as possible
        letrec_expr = (
            Suppress(let_kw) + Suppress(rec_kw) + binding_identifier + Suppress(Literal("=")) +
            expression + Suppress(in_kw) + expression
        ).set_parse_action(lambda t: Letrec(t[0], t[1], t[2]))

        let_expr = (
            Suppress(let_kw) + binding_identifier + Suppress(Literal("=")) +
            expression + Suppress(in_kw) + expression
        ).set_parse_action(lambda t: Let(t[0], t[1], t[2]))

        conditional_expr = (
            Suppress(if_kw) + expression + Suppress(then_kw) + expression +
            Suppress(else_kw) + expression
        ).set_parse_action(lambda t: Conditional(t[0], t[1], t[2]))

        fun_expr = (
            Suppress(fun_kw) + binding_identifier + Suppress(Literal("->")) + expression
        ).set_parse_action(lambda t: Fun(t[0], t[1]))

        expression <<= letrec_expr | let_expr | conditional_expr | fun_expr | operation

        # A program is one expression, optionally terminated by ';;'
        program = expression + PyParsingOptional(Suppress(Literal(";;"))) + StringEnd()

        # Store the main parsers
        self.expression = expression
        self.program = program
        self.atom = atom
        self.application = application
        self.operation = operation

    def parse_expression(self, text: str) -> Expr:
        """Parse a complete MiniML program into an expression tree"""
        try:
            result = self.program.parse_string(text, parse_all=True)
        except ParseException as e:
            raise MiniMLParseError.from_parse_exception(e, text) from e
        if self.debug:
            print(f"DEBUG: parsed {result[0]!r}")
        return result[0]


# ============================================================================
# PARSER
# ============================================================================

class MiniMLParser:
    """Main MiniML parser combining tokenizer and grammar"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.grammar = MiniMLGrammar(debug)
        self.diagnostics: List[str] = []

    def parse_expression(self, text: str, filename: str = "<input>") -> Expr:
        """Parse MiniML source code from a string.

        Diagnostics for characters skipped while scanning are left in
        self.diagnostics.
        """
        tokenizer = MiniMLTokenizer(filename, self.debug)
        scrubbed = tokenizer.scrub(text)
        self.diagnostics = tokenizer.diagnostics
        return self.grammar.parse_expression(scrubbed)

    def parse_file(self, filepath: str) -> Expr:
        """Parse a MiniML source file"""
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            raise MiniMLParseError(f"File not found: {filepath}")
        except UnicodeDecodeError as e:
            raise MiniMLParseError(f"Cannot decode file {filepath}: {e}")
        return self.parse_expression(content, filepath)

    def tokenize(self, text: str, filename: str = "<input>") -> List[Token]:
        """Tokenize MiniML source code"""
        tokenizer = MiniMLTokenizer(filename, self.debug)
        tokens = tokenizer.tokenize(text)
        self.diagnostics = tokenizer.diagnostics
        return tokens


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> MiniMLParser:
    """Create a MiniML parser"""
    return MiniMLParser(debug=debug)


def create_debug_parser() -> MiniMLParser:
    """Create a MiniML parser with debug enabled"""
    return MiniMLParser(debug=True)
