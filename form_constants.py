"""Static symbol tables for the form designer: constructors, layout slots and enumerations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence

from pydantic import BaseModel


FORM_CONSTRUCTOR = "NewForm"
LAYOUT_FUNCTION = "SetLayout"

COMPONENT_CONSTRUCTORS: FrozenSet[str] = frozenset({
	"NewButton",
	"NewNumber",
	"NewBool",
	"NewString",
	"NewCombo",
	"NewGroup",
	"NewImage",
	"NewSelector",
	"NewMaterial",
	"NewButt",
	"NewFurniture",
	"NewLabel",
	"NewColor",
	"NewSeparator",
})

LAYOUT_SLOTS: Dict[str, int] = {"left": 0, "top": 1, "width": 2, "height": 3}

PRIMARY_ARGS: Dict[str, int] = {"caption": 0}

ENUMERATIONS: Dict[str, Dict[str, int]] = {
	"AlignmentType": {"Left": 0, "Right": 1, "Center": 2},
	"AlignType": {"None": 0, "Top": 1, "Bottom": 2, "Left": 3, "Right": 4, "Client": 5},
	"WindowPosition": {"Default": 0, "Left": 1, "Right": 2},
}


class Layout(BaseModel):
	left: int
	top: int
	width: int
	height: int


def names_equal(first: Sequence[str], second: Sequence[str]) -> bool:
	return list(first) == list(second)


def is_ancestor_name(owner: Sequence[str], name: Sequence[str]) -> bool:
	"""True when `owner` is a strict prefix of `name`."""
	return len(owner) < len(name) and list(name[:len(owner)]) == list(owner)


@dataclass(frozen=True)
class ConstantResolver:
	component_constructors: FrozenSet[str] = COMPONENT_CONSTRUCTORS
	layout_slots: Mapping[str, int] = field(default_factory=lambda: dict(LAYOUT_SLOTS))
	primary_args: Mapping[str, int] = field(default_factory=lambda: dict(PRIMARY_ARGS))
	enumerations: Mapping[str, Mapping[str, int]] = field(default_factory=lambda: dict(ENUMERATIONS))

	def is_component_constructor(self, name: str) -> bool:
		return name in self.component_constructors

	def is_form_constructor(self, full_name: Sequence[str]) -> bool:
		return list(full_name) == [FORM_CONSTRUCTOR]

	def layout_arg_index(self, property_name: str) -> Optional[int]:
		return self.layout_slots.get(property_name.lower())

	def primary_arg_index(self, property_name: str) -> Optional[int]:
		return self.primary_args.get(property_name.lower())

	def resolve_constant(self, full_name: Sequence[str]) -> Optional[str]:
		if len(full_name) != 2:
			return None
		members = self.enumerations.get(full_name[0])
		if members is None or full_name[1] not in members:
			return None
		return str(members[full_name[1]])

	def with_primary_args(self, extra: Mapping[str, int]) -> "ConstantResolver":
		if not extra:
			return self
		merged = dict(self.primary_args)
		merged.update({key.lower(): value for key, value in extra.items()})
		return ConstantResolver(self.component_constructors, dict(self.layout_slots), merged, dict(self.enumerations))


DEFAULT_RESOLVER = ConstantResolver()


def layout_call(name: str, layout: Layout) -> str:
	return f"{name}.{LAYOUT_FUNCTION}({layout.left}, {layout.top}, {layout.width}, {layout.height});"


def new_declaration(name: str, type_name: str, caption: Optional[str] = None, layout: Optional[Layout] = None) -> str:
	text = f"let {name} = {type_name}({caption or ''});\n"
	if type_name != FORM_CONSTRUCTOR and layout is not None:
		text += layout_call(name, layout) + "\n"
	return text


def new_form_declaration(form_name: str) -> str:
	return f"let {form_name} = {FORM_CONSTRUCTOR}();\n\n{form_name}.Show();\n"


def split_name(dotted: str) -> List[str]:
	return [part for part in dotted.split(".") if part]
