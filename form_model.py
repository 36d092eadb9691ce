"""Semantic object model of a form script.

Entities live in a flat arena owned by a :class:`SourceModel` and point at each
other through integer handles. Ownership (the dotted-name chain) is expressed by
``owner`` handles, never by nesting, so a model can be copied by re-resolving
names instead of cloning a pointer graph.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from form_constants import is_ancestor_name, names_equal


logger = logging.getLogger(__name__)


class FormModelError(Exception):
	pass


class EntityNotFound(FormModelError):
	def __init__(self, full_name: Sequence[str]) -> None:
		super().__init__(f"can't find variable {'.'.join(full_name)}")
		self.full_name = list(full_name)


class EntityKind(Enum):
	SOURCE = auto()
	GENERIC = auto()
	VALUE = auto()
	OBJECT = auto()
	FUNCTION = auto()
	REFERENCE = auto()


@dataclass(frozen=True)
class Range:
	pos: int = 0
	end: int = 0

	def is_empty(self) -> bool:
		return self.pos == 0 and self.end == 0

	def as_list(self) -> List[int]:
		return [self.pos, self.end]


EMPTY_RANGE = Range()


# ---------------------------------------------------------------------------
# Payload: what an entity was given by its declaration or assignment


@dataclass(frozen=True)
class Unset:
	pass


@dataclass(frozen=True)
class LiteralValue:
	text: str


@dataclass(frozen=True)
class RefersTo:
	target: int


@dataclass(frozen=True)
class InitializedBy:
	initializer: int


Payload = Union[Unset, LiteralValue, RefersTo, InitializedBy]
UNSET = Unset()


@dataclass(eq=False)
class ObjectEntity:
	name: str
	range: Range = EMPTY_RANGE
	owner: Optional[int] = None
	payload: Payload = UNSET
	# whole declaring statement, used for replacement and deletion
	init_range: Range = EMPTY_RANGE
	# literal token only
	value_range: Optional[Range] = None
	handle: int = -1

	@property
	def kind(self) -> EntityKind:
		if isinstance(self.payload, LiteralValue):
			return EntityKind.VALUE
		if isinstance(self.payload, RefersTo):
			return EntityKind.REFERENCE
		return EntityKind.OBJECT

	@property
	def value(self) -> Optional[str]:
		return self.payload.text if isinstance(self.payload, LiteralValue) else None

	@property
	def refers_to(self) -> Optional[int]:
		return self.payload.target if isinstance(self.payload, RefersTo) else None

	@property
	def initializer(self) -> Optional[int]:
		return self.payload.initializer if isinstance(self.payload, InitializedBy) else None


@dataclass(eq=False)
class FunctionEntity(ObjectEntity):
	args: List[int] = field(default_factory=list)

	@property
	def kind(self) -> EntityKind:
		return EntityKind.FUNCTION


class SourceModel:
	"""All entities found in one source unit.

	``variables`` is the ordered list of statement-level entities (what name
	lookup searches); the arena additionally holds call arguments, copied
	initializer functions and placeholders that were pruned from ``variables``.
	"""

	kind = EntityKind.SOURCE

	def __init__(self, file_name: str = "", range: Range = EMPTY_RANGE) -> None:
		self.file_name = file_name
		self.range = range
		self.variables: List[int] = []
		self._arena: List[ObjectEntity] = []
		self._index: Dict[Tuple[str, ...], int] = {}

	# Arena ---------------------------------------------------------------

	def add(self, entity: ObjectEntity, register: bool = True) -> ObjectEntity:
		entity.handle = len(self._arena)
		self._arena.append(entity)
		if register:
			self.variables.append(entity.handle)
			self._index.setdefault(tuple(self.full_name(entity)), entity.handle)
		return entity

	def entity(self, handle: int) -> ObjectEntity:
		return self._arena[handle]

	def iter_variables(self) -> Iterator[ObjectEntity]:
		for handle in self.variables:
			yield self._arena[handle]

	def owner_of(self, entity: ObjectEntity) -> Optional[ObjectEntity]:
		return None if entity.owner is None else self._arena[entity.owner]

	def target_of(self, entity: ObjectEntity) -> Optional[ObjectEntity]:
		target = entity.refers_to
		return None if target is None else self._arena[target]

	def initializer_of(self, entity: ObjectEntity) -> Optional[ObjectEntity]:
		initializer = entity.initializer
		return None if initializer is None else self._arena[initializer]

	def args_of(self, function: FunctionEntity) -> List[ObjectEntity]:
		return [self._arena[handle] for handle in function.args]

	# Names ---------------------------------------------------------------

	def full_name(self, entity: ObjectEntity, dereference: bool = False) -> List[str]:
		if dereference and entity.refers_to is not None:
			return self.full_name(self._arena[entity.refers_to])
		segments = [entity.name]
		owner = entity.owner
		while owner is not None:
			current = self._arena[owner]
			segments.append(current.name)
			owner = current.owner
		segments.reverse()
		return segments

	def find(self, full_name: Sequence[str], create: bool = False) -> ObjectEntity:
		handle = self._index.get(tuple(full_name))
		if handle is not None:
			return self._arena[handle]
		if not create or not full_name:
			raise EntityNotFound(full_name)
		placeholder = ObjectEntity(full_name[-1], range=self.range)
		if len(full_name) > 1:
			owner = self.find(full_name[:-1], create=True)
			placeholder.range = owner.range
			placeholder.init_range = owner.init_range
			placeholder.owner = owner.handle
		return self.add(placeholder)

	def find_function(self, full_name: Sequence[str]) -> Optional[FunctionEntity]:
		for entity in self.iter_variables():
			if isinstance(entity, FunctionEntity) and names_equal(self.full_name(entity), full_name):
				return entity
		return None

	def exists(self, full_name: Sequence[str]) -> bool:
		return tuple(full_name) in self._index

	def related_to(self, entity: ObjectEntity, query: Sequence[str]) -> bool:
		"""True when the entity (or its initializer's owner) is `query` or nested under it."""
		name = self.full_name(entity, dereference=True)
		if names_equal(name, query) or is_ancestor_name(query, name):
			return True
		initializer = self.initializer_of(entity)
		if initializer is not None and initializer.owner is not None:
			name = self.full_name(self._arena[initializer.owner], dereference=True)
			return names_equal(name, query) or is_ancestor_name(query, name)
		return False

	# Lifecycle -----------------------------------------------------------

	def prune_empty(self) -> int:
		kept = [handle for handle in self.variables if not self._is_unresolved(self._arena[handle])]
		removed = len(self.variables) - len(kept)
		self.variables = kept
		self._reindex()
		if removed:
			logger.debug("pruned %d unresolved entities from %s", removed, self.file_name or "<memory>")
		return removed

	def _is_unresolved(self, entity: ObjectEntity) -> bool:
		return entity.range.is_empty() or entity.range == self.range

	def _reindex(self) -> None:
		self._index = {}
		for handle in self.variables:
			self._index.setdefault(tuple(self.full_name(self._arena[handle])), handle)

	def copy(self) -> "SourceModel":
		"""Deep copy whose owner/reference/initializer links are re-resolved by name."""
		clone = SourceModel(self.file_name, self.range)
		by_name: Dict[Tuple[str, ...], int] = {}
		pairs: List[Tuple[ObjectEntity, ObjectEntity]] = []
		for entity in self.iter_variables():
			twin = clone.add(_shallow_copy(entity), register=False)
			clone.variables.append(twin.handle)
			by_name.setdefault(tuple(self.full_name(entity)), twin.handle)
			pairs.append((entity, twin))
		for entity, twin in pairs:
			self._relink(entity, twin, clone, by_name)
		clone._reindex()
		return clone

	def _relink(self, entity: ObjectEntity, twin: ObjectEntity, clone: "SourceModel", by_name: Dict[Tuple[str, ...], int]) -> None:
		owner = self.owner_of(entity)
		if owner is not None:
			twin.owner = clone._handle_for(self.full_name(owner), by_name)
		if isinstance(entity.payload, RefersTo):
			target = self._arena[entity.payload.target]
			twin.payload = RefersTo(clone._handle_for(self.full_name(target), by_name))
		elif isinstance(entity.payload, InitializedBy):
			initializer = self._arena[entity.payload.initializer]
			if isinstance(initializer, FunctionEntity):
				twin.payload = InitializedBy(self._copy_detached(initializer, clone, by_name).handle)
			else:
				twin.payload = InitializedBy(clone._handle_for(self.full_name(initializer), by_name))
		if isinstance(entity, FunctionEntity) and isinstance(twin, FunctionEntity):
			twin.args = [self._copy_detached(arg, clone, by_name).handle for arg in self.args_of(entity)]

	def _copy_detached(self, entity: ObjectEntity, clone: "SourceModel", by_name: Dict[Tuple[str, ...], int]) -> ObjectEntity:
		twin = clone.add(_shallow_copy(entity), register=False)
		self._relink(entity, twin, clone, by_name)
		return twin

	def _handle_for(self, full_name: Sequence[str], by_name: Dict[Tuple[str, ...], int]) -> int:
		key = tuple(full_name)
		handle = by_name.get(key)
		if handle is None:
			# name left the variable list (pruned forward reference): keep it in the arena only
			placeholder = ObjectEntity(key[-1], range=self.range)
			if len(key) > 1:
				placeholder.owner = self._handle_for(key[:-1], by_name)
			handle = self.add(placeholder, register=False).handle
			by_name[key] = handle
		return handle

	# Dumps ---------------------------------------------------------------

	def describe(self, entity: ObjectEntity) -> Dict[str, Any]:
		info: Dict[str, Any] = {
			"name": entity.name,
			"fullname": ".".join(self.full_name(entity)),
			"kind": entity.kind.name.lower(),
			"range": entity.range.as_list(),
			"initRange": entity.init_range.as_list(),
		}
		if entity.value is not None:
			info["value"] = entity.value
			if entity.value_range is not None:
				info["valueRange"] = entity.value_range.as_list()
		target = self.target_of(entity)
		if target is not None:
			info["ref"] = ".".join(self.full_name(target))
		initializer = self.initializer_of(entity)
		if initializer is not None:
			info["initializer"] = self.describe(initializer) if isinstance(initializer, FunctionEntity) else ".".join(self.full_name(initializer))
		if isinstance(entity, FunctionEntity):
			info["args"] = [self.describe(arg) for arg in self.args_of(entity)]
		return info

	def to_dict(self) -> Dict[str, Any]:
		return {
			"fileName": self.file_name,
			"range": self.range.as_list(),
			"variables": [self.describe(entity) for entity in self.iter_variables()],
		}


def _shallow_copy(entity: ObjectEntity) -> ObjectEntity:
	if isinstance(entity, FunctionEntity):
		twin: ObjectEntity = FunctionEntity(entity.name, range=entity.range, init_range=entity.init_range)
	else:
		twin = ObjectEntity(entity.name, range=entity.range, init_range=entity.init_range)
	if isinstance(entity.payload, LiteralValue):
		twin.payload = entity.payload
		twin.value_range = entity.value_range
	return twin
