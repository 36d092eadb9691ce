"""Builds a :class:`SourceModel` from a parsed form script."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, List, Optional

from form_constants import DEFAULT_RESOLVER, ConstantResolver
from form_model import (
	FunctionEntity,
	InitializedBy,
	LiteralValue,
	ObjectEntity,
	Range,
	RefersTo,
	SourceModel,
)
from form_script import (
	BinaryExpression,
	Block,
	CallExpression,
	Diagnostic,
	DiagnosticEngine,
	EmptyStatement,
	ExpressionStatement,
	FalseKeyword,
	FunctionDeclaration,
	FunctionExpression,
	Identifier,
	IfStatement,
	Node,
	NumericLiteral,
	ObjectLiteralExpression,
	ParenthesizedExpression,
	PropertyAccessExpression,
	PropertyAssignment,
	ReturnStatement,
	Severity,
	ShorthandPropertyAssignment,
	SourceFile,
	StringLiteral,
	TokenKind,
	TrueKeyword,
	VariableDeclaration,
	VariableDeclarationList,
	VariableStatement,
	WhileStatement,
)


logger = logging.getLogger(__name__)


class FatalBuildError(Exception):
	"""A construct the model cannot represent; stops the current build."""


# ---------------------------------------------------------------------------
# Parse context


class ContextMode(Enum):
	TOP = auto()
	# properties of an object literal become children of `entity`
	INITIALIZING = auto()
	# the visited expression becomes the value or initializer of `entity`
	ASSIGNING = auto()
	# items are collected as positional call arguments
	ARGUMENTS = auto()


@dataclass(frozen=True)
class ParseContext:
	mode: ContextMode = ContextMode.TOP
	entity: Optional[int] = None
	arguments: Optional[List[int]] = None


TOP_CONTEXT = ParseContext()

SKIPPED_NODES = (IfStatement, WhileStatement, ReturnStatement, FunctionDeclaration, FunctionExpression, EmptyStatement)
CONTAINER_NODES = (SourceFile, VariableStatement, VariableDeclarationList, Block)
LITERAL_NODES = (StringLiteral, NumericLiteral, TrueKeyword, FalseKeyword)


@dataclass
class BuildResult:
	model: SourceModel
	diagnostics: List[Diagnostic] = field(default_factory=list)

	@property
	def has_errors(self) -> bool:
		return any(item.severity == Severity.ERROR for item in self.diagnostics)


def full_init_range(node: Node) -> Range:
	"""Span used to replace or delete the statement that `node` belongs to.

	When the node ends within one character of its top-level statement (a
	trailing ';'), the statement end is used instead.
	"""
	root = node
	while root.parent is not None and not isinstance(root.parent, SourceFile):
		root = root.parent
	if root is not node and abs(root.end - node.end) < 2:
		return Range(node.pos, root.end)
	return Range(node.pos, node.end)


def declarator_range(node: VariableDeclaration, parent: VariableDeclarationList) -> Range:
	"""Span of one declarator in `let a = 1, b = 2;` including one separating comma.

	Declarators before the last one take the comma that follows them; the last
	one takes the comma before it.
	"""
	span = full_init_range(node)
	index = parent.declarations.index(node)
	if index + 1 < len(parent.declarations):
		return Range(span.pos, parent.declarations[index + 1].pos)
	if index > 0:
		return Range(parent.declarations[index - 1].end, span.end)
	return span


def dotted_name(node: Node) -> Optional[List[str]]:
	if isinstance(node, Identifier):
		return [node.text] if node.text else None
	if isinstance(node, PropertyAccessExpression):
		owner = dotted_name(node.expression)
		if owner is None:
			return None
		return owner + [node.name.text]
	return None


class ModelBuilder:
	"""One build pass; owns the model and diagnostics it produces."""

	def __init__(self, file_name: str, file_range: Range, resolver: ConstantResolver = DEFAULT_RESOLVER) -> None:
		self.model = SourceModel(file_name, file_range)
		self.diagnostics = DiagnosticEngine()
		self.resolver = resolver

	def run(self, tree: SourceFile) -> BuildResult:
		try:
			self._visit(tree, TOP_CONTEXT)
		except FatalBuildError as exc:
			self.diagnostics.report(Severity.ERROR, f"{tree.file_name or 'source'}: {exc}")
		self.model.prune_empty()
		return BuildResult(self.model, list(self.diagnostics.items))

	# Dispatch ------------------------------------------------------------

	def _visit(self, node: Node, ctx: ParseContext) -> None:
		if isinstance(node, CONTAINER_NODES):
			for child in node.iter_children():
				self._visit(child, ctx)
		elif isinstance(node, SKIPPED_NODES):
			return
		elif isinstance(node, ExpressionStatement):
			self._visit(node.expression, ctx)
		elif isinstance(node, ParenthesizedExpression):
			self._visit(node.expression, ctx)
		elif isinstance(node, VariableDeclaration):
			self._declare(node, ctx)
		elif isinstance(node, BinaryExpression):
			self._assign(node, ctx)
		elif isinstance(node, CallExpression):
			self._call(node, ctx)
		elif isinstance(node, PropertyAssignment):
			self._property(node, ctx)
		elif isinstance(node, ShorthandPropertyAssignment):
			self._attach(ObjectEntity(node.name.text, range=Range(node.pos, node.end)), ctx)
		elif isinstance(node, (Identifier, PropertyAccessExpression)):
			self._name_reference(node, ctx)
		elif isinstance(node, LITERAL_NODES):
			self._literal(node, ctx)
		elif isinstance(node, ObjectLiteralExpression):
			self._object_literal(node, ctx)
		else:
			self._unsupported(node, "missed kind")

	def _unsupported(self, node: Node, reason: str) -> None:
		self.diagnostics.report(Severity.WARNING, f"{reason}: {node.kind_name} at pos {node.pos}")

	# Constructs ----------------------------------------------------------

	def _declare(self, node: VariableDeclaration, ctx: ParseContext) -> None:
		if not isinstance(node.name, Identifier) or not node.name.text:
			raise FatalBuildError(f"VariableDeclaration: {node.name.kind_name} at pos {node.name.pos} is not an identifier")
		entity = ObjectEntity(node.name.text, range=Range(node.pos, node.end))
		parent = node.parent
		if isinstance(parent, VariableDeclarationList) and len(parent.declarations) == 1:
			entity.init_range = full_init_range(parent)
		elif isinstance(parent, VariableDeclarationList):
			entity.init_range = declarator_range(node, parent)
		else:
			entity.init_range = full_init_range(node)
		self._attach(entity, ctx)
		if node.initializer is not None:
			self._visit(node.initializer, ParseContext(ContextMode.ASSIGNING, entity.handle))

	def _property(self, node: PropertyAssignment, ctx: ParseContext) -> None:
		if not isinstance(node.name, Identifier):
			self._unsupported(node.name, "property name is not an identifier")
			return
		entity = ObjectEntity(node.name.text, range=Range(node.pos, node.end), init_range=full_init_range(node))
		self._attach(entity, ctx)
		self._visit(node.initializer, ParseContext(ContextMode.ASSIGNING, entity.handle))

	def _assign(self, node: BinaryExpression, ctx: ParseContext) -> None:
		if node.operator != TokenKind.ASSIGN:
			self._unsupported(node, f"operator {node.operator.name} is missed")
			return
		name = dotted_name(node.left)
		if name is None:
			self._unsupported(node.left, "assignment target is not a name")
			return
		target = self.model.find(name, create=True)
		target.range = Range(node.pos, node.end)
		target.init_range = full_init_range(node)
		self._visit(node.right, ParseContext(ContextMode.ASSIGNING, target.handle))

	def _call(self, node: CallExpression, ctx: ParseContext) -> None:
		name = dotted_name(node.expression)
		if name is None:
			self._unsupported(node.expression, "callee is not a name")
			return
		function = FunctionEntity(name[-1], range=Range(node.pos, node.end), init_range=full_init_range(node))
		if len(name) > 1:
			function.owner = self.model.find(name[:-1], create=True).handle
		arguments: List[int] = []
		args_ctx = ParseContext(ContextMode.ARGUMENTS, arguments=arguments)
		for argument in node.arguments:
			self._visit(argument, args_ctx)
		function.args = arguments
		self._attach(function, ctx)

	def _name_reference(self, node: Node, ctx: ParseContext) -> None:
		if ctx.mode in (ContextMode.TOP, ContextMode.INITIALIZING):
			self._unsupported(node, "expression has no effect")
			return
		name = dotted_name(node)
		if name is None:
			self._unsupported(node, "name is not resolvable")
			return
		node_range = Range(node.pos, node.end)
		constant = self.resolver.resolve_constant(name)
		if constant is not None:
			item = ObjectEntity("", range=node_range, payload=LiteralValue(constant), value_range=node_range)
		else:
			target = self.model.find(name, create=True)
			item = ObjectEntity("", range=node_range, payload=RefersTo(target.handle), init_range=full_init_range(node))
		self._attach(item, ctx)

	def _literal(self, node: Node, ctx: ParseContext) -> None:
		if ctx.mode in (ContextMode.TOP, ContextMode.INITIALIZING):
			self._unsupported(node, "expression has no effect")
			return
		if isinstance(node, TrueKeyword):
			text = "true"
		elif isinstance(node, FalseKeyword):
			text = "false"
		else:
			text = node.text
		node_range = Range(node.pos, node.end)
		self._attach(ObjectEntity("", range=node_range, payload=LiteralValue(text), value_range=node_range), ctx)

	def _object_literal(self, node: ObjectLiteralExpression, ctx: ParseContext) -> None:
		if ctx.mode != ContextMode.ASSIGNING:
			self._unsupported(node, "object literal is not assigned")
			return
		inner = ParseContext(ContextMode.INITIALIZING, ctx.entity)
		for prop in node.properties:
			self._visit(prop, inner)

	# Attachment ----------------------------------------------------------

	def _attach(self, item: ObjectEntity, ctx: ParseContext) -> None:
		model = self.model
		if ctx.mode == ContextMode.ASSIGNING:
			target = model.entity(ctx.entity)
			if isinstance(item, FunctionEntity):
				model.add(item, register=False)
				target.payload = InitializedBy(item.handle)
				target.value_range = None
			elif isinstance(item.payload, (LiteralValue, RefersTo)):
				target.payload = item.payload
				target.value_range = item.value_range
			else:
				raise FatalBuildError(f"can't assign {item.name or 'item'} to {'.'.join(model.full_name(target))}")
		elif ctx.mode == ContextMode.ARGUMENTS:
			model.add(item, register=False)
			ctx.arguments.append(item.handle)
		elif ctx.mode == ContextMode.INITIALIZING:
			owner = model.entity(ctx.entity)
			item.owner = owner.handle
			item.init_range = owner.init_range
			model.add(item)
		else:
			model.add(item)


def build_model(
	tree: SourceFile,
	resolver: ConstantResolver = DEFAULT_RESOLVER,
	sink: Optional[Callable[[str], None]] = None,
) -> BuildResult:
	result = ModelBuilder(tree.file_name, Range(tree.pos, tree.end), resolver).run(tree)
	logger.debug(
		"built %s: %d variables, %d diagnostics",
		tree.file_name or "<memory>",
		len(result.model.variables),
		len(result.diagnostics),
	)
	if sink is not None:
		for diagnostic in result.diagnostics:
			sink(diagnostic.format())
	return result
