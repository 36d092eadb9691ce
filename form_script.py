"""Lexer and parser for the declarative form-script subset (let/var/const, calls, assignments, object literals)."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum, auto
from typing import Any, Dict, Iterable, Iterator, List, Optional


# ---------------------------------------------------------------------------
# Diagnostic infrastructure


class Severity(Enum):
	INFO = auto()
	WARNING = auto()
	ERROR = auto()


@dataclass
class Position:
	line: int
	column: int
	index: int


@dataclass
class Span:
	start: Position
	end: Position


@dataclass
class Diagnostic:
	severity: Severity
	message: str
	span: Optional[Span] = None
	hint: Optional[str] = None

	def format(self) -> str:
		location = f"{self.span.start.line}:{self.span.start.column} " if self.span else ""
		return f"{self.severity.name} {location}{self.message}"


class DiagnosticEngine:
	def __init__(self) -> None:
		self._items: List[Diagnostic] = []

	@property
	def items(self) -> List[Diagnostic]:
		return self._items

	def report(self, severity: Severity, message: str, span: Optional[Span] = None, hint: Optional[str] = None) -> None:
		self._items.append(Diagnostic(severity, message, span, hint))

	def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
		self._items.extend(diagnostics)

	def clear(self) -> None:
		self._items.clear()

	def has_errors(self) -> bool:
		return any(item.severity == Severity.ERROR for item in self._items)


# ---------------------------------------------------------------------------
# Lexer


class TokenKind(Enum):
	LET = auto()
	VAR = auto()
	CONST = auto()
	FUNCTION = auto()
	IF = auto()
	ELSE = auto()
	WHILE = auto()
	RETURN = auto()
	NEW = auto()
	TRUE = auto()
	FALSE = auto()
	NULL = auto()
	IDENT = auto()
	NUMBER = auto()
	STRING = auto()
	PLUS = auto()
	MINUS = auto()
	STAR = auto()
	SLASH = auto()
	PERCENT = auto()
	ASSIGN = auto()
	PLUS_ASSIGN = auto()
	MINUS_ASSIGN = auto()
	STAR_ASSIGN = auto()
	SLASH_ASSIGN = auto()
	EQ = auto()
	NEQ = auto()
	STRICT_EQ = auto()
	STRICT_NEQ = auto()
	GT = auto()
	GTE = auto()
	LT = auto()
	LTE = auto()
	AND = auto()
	OR = auto()
	BANG = auto()
	INCREMENT = auto()
	DECREMENT = auto()
	ARROW = auto()
	QUESTION = auto()
	COLON = auto()
	LPAREN = auto()
	RPAREN = auto()
	LBRACKET = auto()
	RBRACKET = auto()
	LBRACE = auto()
	RBRACE = auto()
	SEMI = auto()
	COMMA = auto()
	DOT = auto()
	EOF = auto()
	UNKNOWN = auto()


KEYWORDS: Dict[str, TokenKind] = {
	"let": TokenKind.LET,
	"var": TokenKind.VAR,
	"const": TokenKind.CONST,
	"function": TokenKind.FUNCTION,
	"if": TokenKind.IF,
	"else": TokenKind.ELSE,
	"while": TokenKind.WHILE,
	"return": TokenKind.RETURN,
	"new": TokenKind.NEW,
	"true": TokenKind.TRUE,
	"false": TokenKind.FALSE,
	"null": TokenKind.NULL,
}


SYMBOLS: Dict[str, TokenKind] = {
	"===": TokenKind.STRICT_EQ,
	"!==": TokenKind.STRICT_NEQ,
	"==": TokenKind.EQ,
	"!=": TokenKind.NEQ,
	"=>": TokenKind.ARROW,
	">=": TokenKind.GTE,
	"<=": TokenKind.LTE,
	"&&": TokenKind.AND,
	"||": TokenKind.OR,
	"+=": TokenKind.PLUS_ASSIGN,
	"-=": TokenKind.MINUS_ASSIGN,
	"*=": TokenKind.STAR_ASSIGN,
	"/=": TokenKind.SLASH_ASSIGN,
	"++": TokenKind.INCREMENT,
	"--": TokenKind.DECREMENT,
	"+": TokenKind.PLUS,
	"-": TokenKind.MINUS,
	"*": TokenKind.STAR,
	"/": TokenKind.SLASH,
	"%": TokenKind.PERCENT,
	"=": TokenKind.ASSIGN,
	">": TokenKind.GT,
	"<": TokenKind.LT,
	"!": TokenKind.BANG,
	"?": TokenKind.QUESTION,
	":": TokenKind.COLON,
	"(": TokenKind.LPAREN,
	")": TokenKind.RPAREN,
	"[": TokenKind.LBRACKET,
	"]": TokenKind.RBRACKET,
	"{": TokenKind.LBRACE,
	"}": TokenKind.RBRACE,
	";": TokenKind.SEMI,
	",": TokenKind.COMMA,
	".": TokenKind.DOT,
}


ESCAPES: Dict[str, str] = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}


@dataclass
class Token:
	kind: TokenKind
	lexeme: str
	span: Span
	value: Optional[Any] = None
	# offset right after the previous token; leading trivia belongs to this token
	full_start: int = 0
	newline_before: bool = False

	@property
	def end(self) -> int:
		return self.span.end.index

	def is_name(self) -> bool:
		return self.kind == TokenKind.IDENT or self.kind in KEYWORDS.values()


class Lexer:
	def __init__(self, source: str, diagnostics: DiagnosticEngine) -> None:
		self.source = source
		self.diagnostics = diagnostics
		self.length = len(source)
		self.index = 0
		self.line = 1
		self.column = 1
		self._last_end = 0
		self._newline_seen = False

	def tokenize(self) -> List[Token]:
		tokens: List[Token] = []
		while not self._is_eof():
			ch = self._peek()
			if ch in " \t\r\f\v\ufeff\u00a0":
				self._advance()
			elif ch == "\n":
				self._newline()
			elif ch == "/" and self._peek_next() == "/":
				self._consume_comment()
			elif ch == "/" and self._peek_next() == "*":
				self._consume_block_comment()
			elif ch.isalpha() or ch in "_$":
				tokens.append(self._consume_identifier())
			elif ch.isdigit() or (ch == "." and self._peek_next().isdigit()):
				tokens.append(self._consume_number())
			elif ch in "'\"`":
				tokens.append(self._consume_string())
			else:
				tokens.append(self._consume_symbol())
		tokens.append(self._make_token(TokenKind.EOF, "", self._current_position()))
		return tokens

	def _newline(self) -> None:
		self._advance()
		self.line += 1
		self.column = 1
		self._newline_seen = True

	def _consume_comment(self) -> None:
		while not self._is_eof() and self._peek() != "\n":
			self._advance()

	def _consume_block_comment(self) -> None:
		start = self._current_position()
		self._advance()
		self._advance()
		while not self._is_eof():
			if self._peek() == "*" and self._peek_next() == "/":
				self._advance()
				self._advance()
				return
			if self._peek() == "\n":
				self._newline()
			else:
				self._advance()
		self.diagnostics.report(Severity.ERROR, "Unterminated block comment", Span(start, self._current_position()))

	def _consume_identifier(self) -> Token:
		start = self._current_position()
		lexeme = self._consume_while(lambda c: c.isalnum() or c in "_$")
		kind = KEYWORDS.get(lexeme, TokenKind.IDENT)
		return self._make_token(kind, lexeme, start)

	def _consume_number(self) -> Token:
		start = self._current_position()
		if self._peek() == "0" and self._peek_next() in ("x", "X"):
			self._advance()
			self._advance()
			digits = self._consume_while(lambda c: c in "0123456789abcdefABCDEF")
			lexeme = self.source[start.index:self.index]
			if not digits:
				self.diagnostics.report(Severity.ERROR, f"Invalid hexadecimal literal '{lexeme}'", Span(start, self._current_position()))
				return self._make_token(TokenKind.NUMBER, lexeme, start, lexeme)
			return self._make_token(TokenKind.NUMBER, lexeme, start, str(int(digits, 16)))
		self._consume_while(lambda c: c.isdigit())
		if not self._is_eof() and self._peek() == "." and self._peek_next().isdigit():
			self._advance()
			self._consume_while(lambda c: c.isdigit())
		if not self._is_eof() and self._peek() in ("e", "E"):
			following = self._peek_next()
			if following.isdigit() or (following in ("+", "-") and self._peek_at(2).isdigit()):
				self._advance()
				if self._peek() in ("+", "-"):
					self._advance()
				self._consume_while(lambda c: c.isdigit())
		lexeme = self.source[start.index:self.index]
		return self._make_token(TokenKind.NUMBER, lexeme, start, lexeme)

	def _consume_string(self) -> Token:
		start = self._current_position()
		quote = self._advance()
		chars: List[str] = []
		terminated = False
		while not self._is_eof():
			ch = self._peek()
			if ch == quote:
				self._advance()
				terminated = True
				break
			if ch == "\n" and quote != "`":
				break
			if ch == "\n":
				self._newline()
				chars.append(ch)
				continue
			self._advance()
			if ch == "\\":
				if self._is_eof():
					break
				esc = self._advance()
				if esc == "u" and self.index + 4 <= self.length:
					code = self.source[self.index:self.index + 4]
					try:
						chars.append(chr(int(code, 16)))
						for _ in range(4):
							self._advance()
						continue
					except ValueError:
						self.diagnostics.report(Severity.WARNING, f"Invalid unicode escape '\\u{code}'", Span(start, self._current_position()))
				if esc == "\n":
					self.line += 1
					self.column = 1
					continue
				chars.append(ESCAPES.get(esc, esc))
			else:
				chars.append(ch)
		if not terminated:
			self.diagnostics.report(Severity.ERROR, "Unterminated string literal", Span(start, self._current_position()), hint=f"Close the string with {quote}.")
		lexeme = self.source[start.index:self.index]
		return self._make_token(TokenKind.STRING, lexeme, start, "".join(chars))

	def _consume_symbol(self) -> Token:
		start = self._current_position()
		for size in (3, 2, 1):
			candidate = self.source[self.index:self.index + size]
			if len(candidate) == size and candidate in SYMBOLS:
				for _ in range(size):
					self._advance()
				return self._make_token(SYMBOLS[candidate], candidate, start)
		ch = self._advance()
		self.diagnostics.report(Severity.ERROR, f"Unexpected character '{ch}'", Span(start, self._current_position()))
		return self._make_token(TokenKind.UNKNOWN, ch, start)

	def _consume_while(self, predicate) -> str:
		start_index = self.index
		while not self._is_eof() and predicate(self._peek()):
			self._advance()
		return self.source[start_index:self.index]

	def _current_position(self) -> Position:
		return Position(self.line, self.column, self.index)

	def _make_token(self, kind: TokenKind, lexeme: str, start: Position, value: Optional[Any] = None) -> Token:
		end = self._current_position()
		token = Token(kind, lexeme, Span(start, end), value, full_start=self._last_end, newline_before=self._newline_seen)
		self._last_end = end.index
		self._newline_seen = False
		return token

	def _advance(self) -> str:
		ch = self.source[self.index]
		self.index += 1
		self.column += 1
		return ch

	def _peek(self) -> str:
		return self.source[self.index]

	def _peek_next(self) -> str:
		return self._peek_at(1)

	def _peek_at(self, offset: int) -> str:
		if self.index + offset >= self.length:
			return ""
		return self.source[self.index + offset]

	def _is_eof(self) -> bool:
		return self.index >= self.length


# ---------------------------------------------------------------------------
# Syntax tree
#
# `pos` is the full start of the node's first token (leading whitespace and
# comments included), `end` is the end offset of its last token.


@dataclass(eq=False)
class Node:
	pos: int
	end: int
	parent: Optional["Node"] = field(default=None, init=False, repr=False)

	def iter_children(self) -> Iterator["Node"]:
		for item in fields(self):
			if item.name == "parent":
				continue
			value = getattr(self, item.name)
			if isinstance(value, Node):
				yield value
			elif isinstance(value, list):
				for child in value:
					if isinstance(child, Node):
						yield child

	@property
	def kind_name(self) -> str:
		return type(self).__name__


class Statement(Node):
	pass


class Expression(Node):
	pass


@dataclass(eq=False)
class Identifier(Expression):
	text: str


@dataclass(eq=False)
class ErrorExpression(Expression):
	pass


@dataclass(eq=False)
class StringLiteral(Expression):
	text: str


@dataclass(eq=False)
class NumericLiteral(Expression):
	text: str


@dataclass(eq=False)
class TrueKeyword(Expression):
	pass


@dataclass(eq=False)
class FalseKeyword(Expression):
	pass


@dataclass(eq=False)
class NullKeyword(Expression):
	pass


@dataclass(eq=False)
class PropertyAccessExpression(Expression):
	expression: Expression
	name: Identifier


@dataclass(eq=False)
class ElementAccessExpression(Expression):
	expression: Expression
	argument: Expression


@dataclass(eq=False)
class CallExpression(Expression):
	expression: Expression
	arguments: List[Expression]


@dataclass(eq=False)
class NewExpression(Expression):
	expression: Expression
	arguments: List[Expression]


@dataclass(eq=False)
class BinaryExpression(Expression):
	left: Expression
	operator: TokenKind
	right: Expression


@dataclass(eq=False)
class PrefixUnaryExpression(Expression):
	operator: TokenKind
	operand: Expression


@dataclass(eq=False)
class ParenthesizedExpression(Expression):
	expression: Expression


@dataclass(eq=False)
class PropertyAssignment(Node):
	name: Expression
	initializer: Expression


@dataclass(eq=False)
class ShorthandPropertyAssignment(Node):
	name: Identifier


@dataclass(eq=False)
class ObjectLiteralExpression(Expression):
	properties: List[Node]


@dataclass(eq=False)
class ArrayLiteralExpression(Expression):
	elements: List[Expression]


@dataclass(eq=False)
class ObjectBindingPattern(Node):
	pass


@dataclass(eq=False)
class ArrayBindingPattern(Node):
	pass


@dataclass(eq=False)
class VariableDeclaration(Node):
	name: Node
	initializer: Optional[Expression]


@dataclass(eq=False)
class VariableDeclarationList(Node):
	keyword: str
	declarations: List[VariableDeclaration]


@dataclass(eq=False)
class VariableStatement(Statement):
	declaration_list: VariableDeclarationList


@dataclass(eq=False)
class ExpressionStatement(Statement):
	expression: Expression


@dataclass(eq=False)
class Block(Statement):
	statements: List[Statement]


@dataclass(eq=False)
class EmptyStatement(Statement):
	pass


@dataclass(eq=False)
class IfStatement(Statement):
	condition: Expression
	then_statement: Statement
	else_statement: Optional[Statement]


@dataclass(eq=False)
class WhileStatement(Statement):
	condition: Expression
	body: Statement


@dataclass(eq=False)
class ReturnStatement(Statement):
	expression: Optional[Expression]


@dataclass(eq=False)
class FunctionDeclaration(Statement):
	name: Optional[Identifier]
	parameters: List[Identifier]
	body: Block


@dataclass(eq=False)
class FunctionExpression(Expression):
	name: Optional[Identifier]
	parameters: List[Identifier]
	body: Block


@dataclass(eq=False)
class SourceFile(Node):
	statements: List[Statement]
	file_name: str = ""


def link_parents(root: Node) -> None:
	stack = [root]
	while stack:
		node = stack.pop()
		for child in node.iter_children():
			child.parent = node
			stack.append(child)


# ---------------------------------------------------------------------------
# Parser


ASSIGNMENT_OPERATORS = {
	TokenKind.ASSIGN,
	TokenKind.PLUS_ASSIGN,
	TokenKind.MINUS_ASSIGN,
	TokenKind.STAR_ASSIGN,
	TokenKind.SLASH_ASSIGN,
}


BINARY_PRECEDENCE: Dict[TokenKind, int] = {
	TokenKind.OR: 1,
	TokenKind.AND: 2,
	TokenKind.EQ: 3,
	TokenKind.NEQ: 3,
	TokenKind.STRICT_EQ: 3,
	TokenKind.STRICT_NEQ: 3,
	TokenKind.LT: 4,
	TokenKind.LTE: 4,
	TokenKind.GT: 4,
	TokenKind.GTE: 4,
	TokenKind.PLUS: 5,
	TokenKind.MINUS: 5,
	TokenKind.STAR: 6,
	TokenKind.SLASH: 6,
	TokenKind.PERCENT: 6,
}


UNARY_OPERATORS = {TokenKind.BANG, TokenKind.MINUS, TokenKind.PLUS, TokenKind.INCREMENT, TokenKind.DECREMENT}


class Parser:
	def __init__(self, tokens: List[Token], diagnostics: DiagnosticEngine) -> None:
		self.tokens = tokens
		self.diagnostics = diagnostics
		self.index = 0

	def parse_source_file(self, length: int, file_name: str = "") -> SourceFile:
		statements: List[Statement] = []
		while not self._is_at_end():
			prev_index = self.index
			statements.append(self._parse_statement())
			# Error recovery: if we didn't advance, skip the problematic token
			if self.index == prev_index and not self._is_at_end():
				self._error(f"Unexpected token '{self.tokens[self.index].lexeme}', skipping.", self.tokens[self.index])
				self.index += 1
		source = SourceFile(pos=0, end=length, statements=statements, file_name=file_name)
		link_parents(source)
		return source

	def _parse_statement(self) -> Statement:
		token = self._peek()
		if token.kind in (TokenKind.LET, TokenKind.VAR, TokenKind.CONST):
			return self._parse_variable_statement()
		if token.kind == TokenKind.FUNCTION:
			start = self._start()
			self._advance_token()
			name, parameters, body = self._parse_function_rest()
			return FunctionDeclaration(pos=start, end=self._finish(), name=name, parameters=parameters, body=body)
		if token.kind == TokenKind.IF:
			start = self._start()
			self._advance_token()
			condition = self._parse_condition("if")
			then_statement = self._parse_statement()
			else_statement = self._parse_statement() if self._match(TokenKind.ELSE) else None
			return IfStatement(pos=start, end=self._finish(), condition=condition, then_statement=then_statement, else_statement=else_statement)
		if token.kind == TokenKind.WHILE:
			start = self._start()
			self._advance_token()
			condition = self._parse_condition("while")
			body = self._parse_statement()
			return WhileStatement(pos=start, end=self._finish(), condition=condition, body=body)
		if token.kind == TokenKind.RETURN:
			start = self._start()
			self._advance_token()
			value = None
			if not self._at_statement_boundary():
				value = self._parse_expression()
			self._consume_terminator()
			return ReturnStatement(pos=start, end=self._finish(), expression=value)
		if token.kind == TokenKind.LBRACE:
			return self._parse_block()
		if token.kind == TokenKind.SEMI:
			start = self._start()
			self._advance_token()
			return EmptyStatement(pos=start, end=self._finish())
		start = self._start()
		expression = self._parse_expression()
		self._consume_terminator()
		return ExpressionStatement(pos=start, end=self._finish(), expression=expression)

	def _parse_variable_statement(self) -> VariableStatement:
		start = self._start()
		keyword = self._advance_token()
		declarations: List[VariableDeclaration] = []
		while True:
			decl_start = self._start()
			name = self._parse_binding_name()
			initializer = self._parse_assignment() if self._match(TokenKind.ASSIGN) else None
			declarations.append(VariableDeclaration(pos=decl_start, end=self._finish(), name=name, initializer=initializer))
			if not self._match(TokenKind.COMMA):
				break
		declaration_list = VariableDeclarationList(pos=start, end=self._finish(), keyword=keyword.lexeme, declarations=declarations)
		self._consume_terminator()
		return VariableStatement(pos=start, end=self._finish(), declaration_list=declaration_list)

	def _parse_binding_name(self) -> Node:
		start = self._start()
		token = self._peek()
		if token.kind == TokenKind.IDENT:
			self._advance_token()
			return Identifier(pos=start, end=token.end, text=token.lexeme)
		if token.kind in (TokenKind.LBRACE, TokenKind.LBRACKET):
			self._skip_balanced()
			if token.kind == TokenKind.LBRACE:
				return ObjectBindingPattern(pos=start, end=self._finish())
			return ArrayBindingPattern(pos=start, end=self._finish())
		self._error("Expected variable name.", token, hint="Declarations look like: let name = value;")
		return ErrorExpression(pos=start, end=start)

	def _parse_function_rest(self):
		name = None
		if self._check(TokenKind.IDENT):
			token = self._advance_token()
			name = Identifier(pos=token.full_start, end=token.end, text=token.lexeme)
		self._expect(TokenKind.LPAREN, "Expected '(' after function name.")
		parameters: List[Identifier] = []
		while not self._check(TokenKind.RPAREN) and not self._is_at_end():
			token = self._advance_token()
			if token.kind == TokenKind.IDENT:
				parameters.append(Identifier(pos=token.full_start, end=token.end, text=token.lexeme))
			elif token.kind != TokenKind.COMMA:
				self._error(f"Unexpected '{token.lexeme}' in parameter list.", token)
		self._expect(TokenKind.RPAREN, "Expected ')' after parameters.")
		body = self._parse_block()
		return name, parameters, body

	def _parse_condition(self, keyword: str) -> Expression:
		self._expect(TokenKind.LPAREN, f"Expected '(' after '{keyword}'.")
		condition = self._parse_expression()
		self._expect(TokenKind.RPAREN, "Expected ')' after condition.")
		return condition

	def _parse_block(self) -> Block:
		start = self._start()
		self._expect(TokenKind.LBRACE, "Expected '{' to start a block.")
		statements: List[Statement] = []
		while not self._check(TokenKind.RBRACE) and not self._is_at_end():
			prev_index = self.index
			statements.append(self._parse_statement())
			if self.index == prev_index and not self._is_at_end():
				self._error(f"Unexpected token '{self.tokens[self.index].lexeme}', skipping.", self.tokens[self.index])
				self.index += 1
		self._expect(TokenKind.RBRACE, "Expected '}' to close block.")
		return Block(pos=start, end=self._finish(), statements=statements)

	def _parse_expression(self) -> Expression:
		return self._parse_assignment()

	def _parse_assignment(self) -> Expression:
		start = self._start()
		left = self._parse_binary(1)
		if self._peek().kind in ASSIGNMENT_OPERATORS:
			operator = self._advance_token()
			right = self._parse_assignment()
			return BinaryExpression(pos=start, end=self._finish(), left=left, operator=operator.kind, right=right)
		return left

	def _parse_binary(self, min_precedence: int) -> Expression:
		start = self._start()
		left = self._parse_unary()
		while True:
			precedence = BINARY_PRECEDENCE.get(self._peek().kind)
			if precedence is None or precedence < min_precedence:
				return left
			operator = self._advance_token()
			right = self._parse_binary(precedence + 1)
			left = BinaryExpression(pos=start, end=self._finish(), left=left, operator=operator.kind, right=right)

	def _parse_unary(self) -> Expression:
		if self._peek().kind in UNARY_OPERATORS:
			start = self._start()
			operator = self._advance_token()
			operand = self._parse_unary()
			return PrefixUnaryExpression(pos=start, end=self._finish(), operator=operator.kind, operand=operand)
		return self._parse_postfix()

	def _parse_postfix(self) -> Expression:
		start = self._start()
		expression = self._parse_primary()
		while True:
			if self._match(TokenKind.DOT):
				token = self._peek()
				if not token.is_name():
					self._error("Expected property name after '.'.", token)
					return expression
				self._advance_token()
				name = Identifier(pos=token.full_start, end=token.end, text=token.lexeme)
				expression = PropertyAccessExpression(pos=start, end=self._finish(), expression=expression, name=name)
			elif self._check(TokenKind.LPAREN):
				arguments = self._parse_arguments()
				expression = CallExpression(pos=start, end=self._finish(), expression=expression, arguments=arguments)
			elif self._match(TokenKind.LBRACKET):
				argument = self._parse_expression()
				self._expect(TokenKind.RBRACKET, "Expected ']' after index expression.")
				expression = ElementAccessExpression(pos=start, end=self._finish(), expression=expression, argument=argument)
			else:
				return expression

	def _parse_arguments(self) -> List[Expression]:
		self._expect(TokenKind.LPAREN, "Expected '(' to start argument list.")
		arguments: List[Expression] = []
		while not self._check(TokenKind.RPAREN) and not self._is_at_end():
			arguments.append(self._parse_assignment())
			if not self._match(TokenKind.COMMA):
				break
		self._expect(TokenKind.RPAREN, "Expected ')' after arguments.")
		return arguments

	def _parse_primary(self) -> Expression:
		start = self._start()
		token = self._peek()
		if token.kind == TokenKind.IDENT:
			self._advance_token()
			return Identifier(pos=start, end=token.end, text=token.lexeme)
		if token.kind == TokenKind.NUMBER:
			self._advance_token()
			return NumericLiteral(pos=start, end=token.end, text=token.value)
		if token.kind == TokenKind.STRING:
			self._advance_token()
			return StringLiteral(pos=start, end=token.end, text=token.value)
		if token.kind == TokenKind.TRUE:
			self._advance_token()
			return TrueKeyword(pos=start, end=token.end)
		if token.kind == TokenKind.FALSE:
			self._advance_token()
			return FalseKeyword(pos=start, end=token.end)
		if token.kind == TokenKind.NULL:
			self._advance_token()
			return NullKeyword(pos=start, end=token.end)
		if token.kind == TokenKind.LPAREN:
			self._advance_token()
			inner = self._parse_expression()
			self._expect(TokenKind.RPAREN, "Missing closing ')' in expression.")
			return ParenthesizedExpression(pos=start, end=self._finish(), expression=inner)
		if token.kind == TokenKind.LBRACE:
			return self._parse_object_literal()
		if token.kind == TokenKind.LBRACKET:
			self._advance_token()
			elements: List[Expression] = []
			while not self._check(TokenKind.RBRACKET) and not self._is_at_end():
				elements.append(self._parse_assignment())
				if not self._match(TokenKind.COMMA):
					break
			self._expect(TokenKind.RBRACKET, "Expected ']' after array elements.")
			return ArrayLiteralExpression(pos=start, end=self._finish(), elements=elements)
		if token.kind == TokenKind.FUNCTION:
			self._advance_token()
			name, parameters, body = self._parse_function_rest()
			return FunctionExpression(pos=start, end=self._finish(), name=name, parameters=parameters, body=body)
		if token.kind == TokenKind.NEW:
			self._advance_token()
			callee = self._parse_primary()
			while self._match(TokenKind.DOT):
				name_token = self._peek()
				if not name_token.is_name():
					self._error("Expected property name after '.'.", name_token)
					break
				self._advance_token()
				name = Identifier(pos=name_token.full_start, end=name_token.end, text=name_token.lexeme)
				callee = PropertyAccessExpression(pos=callee.pos, end=self._finish(), expression=callee, name=name)
			arguments = self._parse_arguments() if self._check(TokenKind.LPAREN) else []
			return NewExpression(pos=start, end=self._finish(), expression=callee, arguments=arguments)
		self._error(f"Invalid expression start: '{token.lexeme}'", token)
		if token.kind not in (TokenKind.SEMI, TokenKind.RBRACE, TokenKind.RPAREN, TokenKind.EOF):
			self._advance_token()
		return ErrorExpression(pos=start, end=max(start, self._finish()))

	def _parse_object_literal(self) -> ObjectLiteralExpression:
		start = self._start()
		self._expect(TokenKind.LBRACE, "Expected '{'.")
		properties: List[Node] = []
		while not self._check(TokenKind.RBRACE) and not self._is_at_end():
			prop_start = self._start()
			token = self._peek()
			if token.is_name():
				self._advance_token()
				name = Identifier(pos=prop_start, end=token.end, text=token.lexeme)
				if self._match(TokenKind.COLON):
					initializer = self._parse_assignment()
					properties.append(PropertyAssignment(pos=prop_start, end=self._finish(), name=name, initializer=initializer))
				else:
					properties.append(ShorthandPropertyAssignment(pos=prop_start, end=self._finish(), name=name))
			elif token.kind in (TokenKind.STRING, TokenKind.NUMBER):
				self._advance_token()
				if token.kind == TokenKind.STRING:
					key: Expression = StringLiteral(pos=prop_start, end=token.end, text=token.value)
				else:
					key = NumericLiteral(pos=prop_start, end=token.end, text=token.value)
				self._expect(TokenKind.COLON, "Expected ':' after property name.")
				initializer = self._parse_assignment()
				properties.append(PropertyAssignment(pos=prop_start, end=self._finish(), name=key, initializer=initializer))
			else:
				self._error(f"Unexpected '{token.lexeme}' in object literal.", token)
				self._advance_token()
				continue
			if not self._match(TokenKind.COMMA):
				break
		self._expect(TokenKind.RBRACE, "Expected '}' to close object literal.")
		return ObjectLiteralExpression(pos=start, end=self._finish(), properties=properties)

	def _skip_balanced(self) -> None:
		depth = 0
		while not self._is_at_end():
			token = self._advance_token()
			if token.kind in (TokenKind.LBRACE, TokenKind.LBRACKET, TokenKind.LPAREN):
				depth += 1
			elif token.kind in (TokenKind.RBRACE, TokenKind.RBRACKET, TokenKind.RPAREN):
				depth -= 1
				if depth <= 0:
					return

	def _consume_terminator(self) -> None:
		if self._match(TokenKind.SEMI):
			return
		if self._at_statement_boundary():
			return
		self._error("Expected ';' after statement.", self._peek(), hint="Statements end with ';' or a line break.")
		# skip to the next statement boundary
		while not self._is_at_end():
			if self._match(TokenKind.SEMI):
				return
			if self._check(TokenKind.RBRACE) or self._peek().newline_before:
				return
			self._advance_token()

	def _at_statement_boundary(self) -> bool:
		token = self._peek()
		return token.kind in (TokenKind.SEMI, TokenKind.RBRACE, TokenKind.EOF) or token.newline_before

	# Utility parsing helpers -------------------------------------------------

	def _start(self) -> int:
		return self._peek().full_start

	def _finish(self) -> int:
		return self._previous().end

	def _match(self, kind: TokenKind) -> bool:
		if self._check(kind):
			self.index += 1
			return True
		return False

	def _check(self, kind: TokenKind) -> bool:
		if self._is_at_end():
			return False
		return self.tokens[self.index].kind == kind

	def _peek(self) -> Token:
		return self.tokens[self.index]

	def _advance_token(self) -> Token:
		if not self._is_at_end():
			self.index += 1
		return self.tokens[self.index - 1]

	def _expect(self, kind: TokenKind, message: str) -> Optional[Token]:
		if self._check(kind):
			return self._advance_token()
		self._error(message, self.tokens[self.index])
		return None

	def _previous(self) -> Token:
		return self.tokens[max(self.index - 1, 0)]

	def _is_at_end(self) -> bool:
		return self.tokens[self.index].kind == TokenKind.EOF

	def _error(self, message: str, token: Optional[Token] = None, hint: Optional[str] = None) -> None:
		span = token.span if token else None
		self.diagnostics.report(Severity.ERROR, message, span, hint=hint)


# ---------------------------------------------------------------------------
# Entry point


@dataclass
class ParseResult:
	tree: SourceFile
	tokens: List[Token]
	diagnostics: List[Diagnostic]


def parse_script(source: str, file_name: str = "") -> ParseResult:
	diagnostics = DiagnosticEngine()
	tokens = Lexer(source, diagnostics).tokenize()
	tree = Parser(tokens, diagnostics).parse_source_file(len(source), file_name)
	return ParseResult(tree=tree, tokens=tokens, diagnostics=diagnostics.items)
