"""Text patches for designer edit requests, computed against the current model."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from form_constants import (
	DEFAULT_RESOLVER,
	FORM_CONSTRUCTOR,
	LAYOUT_FUNCTION,
	ConstantResolver,
	Layout,
	new_declaration,
	split_name,
)
from form_model import EntityKind, EntityNotFound, FunctionEntity, ObjectEntity, Range, SourceModel


logger = logging.getLogger(__name__)


@dataclass
class TextChange:
	pos: int
	end: int
	new_text: str = ""

	def as_message(self) -> Dict[str, Any]:
		return {"pos": self.pos, "end": self.end, "newText": self.new_text}


class PatchGenerator:
	def __init__(self, model: SourceModel, resolver: ConstantResolver = DEFAULT_RESOLVER) -> None:
		self.model = model
		self.resolver = resolver

	# Helpers -------------------------------------------------------------

	def is_form(self, entity: ObjectEntity, model: Optional[SourceModel] = None) -> bool:
		model = model or self.model
		initializer = model.initializer_of(entity)
		return initializer is not None and initializer.owner is None and initializer.name == FORM_CONSTRUCTOR

	def insert_position(self, component: ObjectEntity, model: Optional[SourceModel] = None, form_rule: bool = True) -> int:
		"""Offset where a declaration owned by `component` goes.

		Inside a form (or a form's property object) new declarations precede
		the form's first call statement; elsewhere, or with ``form_rule=False``,
		they follow the owner's last child statement.
		"""
		model = model or self.model
		owner = component
		in_form = False
		if form_rule:
			in_form = self.is_form(component, model)
			parent = self._live_owner(component, model)
			if not in_form and parent is not None and self.is_form(parent, model):
				in_form = True
				owner = parent
		owner_name = model.full_name(owner)
		position: Optional[int] = None
		for variable in model.iter_variables():
			# by name; a child may still point at a pruned placeholder of its owner
			if variable.owner is None or model.full_name(model.entity(variable.owner)) != owner_name:
				continue
			if in_form and variable.kind == EntityKind.FUNCTION:
				return variable.init_range.pos
			position = variable.init_range.end
		if position is None:
			position = owner.init_range.end
		return position

	@staticmethod
	def _live_owner(entity: ObjectEntity, model: SourceModel) -> Optional[ObjectEntity]:
		owner = model.owner_of(entity)
		if owner is None:
			return None
		name = model.full_name(owner)
		return model.find(name) if model.exists(name) else owner

	def unique_name(self, name: str, model: Optional[SourceModel] = None) -> str:
		model = model or self.model
		index = 1
		while model.exists([name + str(index)]):
			index += 1
		return name + str(index)

	def _resolve_owner(self, full_name: Sequence[str]) -> Tuple[ObjectEntity, SourceModel]:
		try:
			return self.model.find(full_name), self.model
		except EntityNotFound:
			# placeholders go into a scratch copy so the live model stays untouched
			scratch = self.model.copy()
			return scratch.find(full_name, create=True), scratch

	# Operations ----------------------------------------------------------

	def insert_component(self, owner_name: str, name: str, type_name: str, layout: Layout, args: Optional[List[str]] = None) -> TextChange:
		owner, model = self._resolve_owner(split_name(owner_name))
		position = self.insert_position(owner, model)
		component_name = self.unique_name(name, model)
		text = ""
		if self.resolver.is_component_constructor(type_name):
			constructor = ".".join(model.full_name(owner) + [type_name])
			text = "\n" + new_declaration(component_name, constructor, ", ".join(args or []), layout).rstrip("\n")
		else:
			logger.warning("insert_component: %s is not a component constructor", type_name)
		return TextChange(position, position, text)

	def change_property(self, component: str, prop: str, value: str) -> Optional[TextChange]:
		"""Edit for setting `prop` of `component`; raises EntityNotFound for unknown components."""
		component_name = split_name(component)
		target = self.model.find(component_name)
		initializer = self.model.initializer_of(target)
		is_component = initializer is not None and self.resolver.is_component_constructor(initializer.name)
		layout_index: Optional[int] = None
		primary_index: Optional[int] = None
		if is_component:
			layout_index = self.resolver.layout_arg_index(prop)
			if layout_index is None:
				primary_index = self.resolver.primary_arg_index(prop)
		if layout_index is not None:
			return self._change_layout(target, component_name, prop, value, layout_index)
		if primary_index is not None:
			return self._change_primary(initializer, value, primary_index)
		return self._change_free(target, component_name, prop, value, is_component)

	def _change_layout(self, target: ObjectEntity, component_name: List[str], prop: str, value: str, index: int) -> TextChange:
		layout = self.model.find_function(component_name + [LAYOUT_FUNCTION])
		if layout is not None and not layout.range.is_empty() and index < len(layout.args):
			arg = self.model.entity(layout.args[index])
			text = " " + value if index in (1, 2) else value
			return TextChange(arg.range.pos, arg.range.end, text)
		point = target.init_range.end
		return TextChange(point, point, f"\n{'.'.join(component_name)}.{prop} = {value};")

	def _change_primary(self, initializer: ObjectEntity, value: str, index: int) -> Optional[TextChange]:
		if not isinstance(initializer, FunctionEntity):
			return None
		args = self.model.args_of(initializer)
		if index < len(args):
			arg = args[index]
			return TextChange(arg.range.pos, arg.range.end, " " + value if index > 0 else value)
		# before the closing parenthesis of the constructor call
		point = initializer.range.end - 1
		text = ", ".join(["''"] * (index - len(args)) + [value])
		if args:
			text = ", " + text
		return TextChange(point, point, text)

	def _change_free(self, target: ObjectEntity, component_name: List[str], prop: str, value: str, is_component: bool) -> TextChange:
		dotted = ".".join(component_name)
		try:
			entity = self.model.find(component_name + [prop])
		except EntityNotFound:
			if is_component:
				point = self.insert_position(target, form_rule=False)
			else:
				point = target.init_range.end
			return TextChange(point, point, f"\n{dotted}.{prop} = {value};")
		is_function = isinstance(entity, FunctionEntity)
		if not is_function and entity.value_range is not None:
			return TextChange(entity.value_range.pos, entity.value_range.end, " " + value)
		if not entity.init_range.is_empty():
			span = entity.init_range
		elif not entity.range.is_empty():
			span = entity.range
		else:
			span = Range(target.init_range.end, target.init_range.end)
		if is_function:
			text = f"\n{dotted}.{prop}({value});"
		else:
			text = f"\n{dotted}.{prop} = {value};"
		return TextChange(span.pos, span.end, text)

	def related_entities(self, component: str) -> List[ObjectEntity]:
		"""Entities removed together with `component`, in statement order."""
		names: List[List[str]] = [split_name(component)]
		selected: Set[int] = set()
		grown = True
		while grown:
			grown = False
			for entity in self.model.iter_variables():
				if entity.handle in selected:
					continue
				if any(self.model.related_to(entity, name) for name in names):
					selected.add(entity.handle)
					grown = True
					if entity.kind == EntityKind.OBJECT:
						names.append(self.model.full_name(entity, dereference=True))
		return [entity for entity in self.model.iter_variables() if entity.handle in selected]

	def delete_component(self, component: str) -> List[TextChange]:
		spans = sorted(
			(entity.init_range.pos, entity.init_range.end)
			for entity in self.related_entities(component)
			if not entity.init_range.is_empty()
		)
		# declarators of one statement share their separating comma
		merged: List[List[int]] = []
		for pos, end in spans:
			if merged and pos < merged[-1][1]:
				merged[-1][1] = max(merged[-1][1], end)
			else:
				merged.append([pos, end])
		return [TextChange(pos, end, "") for pos, end in merged]
