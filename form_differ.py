"""Structural diff of two source models into a change log for the form designer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from enum import IntEnum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from form_constants import DEFAULT_RESOLVER, ConstantResolver, is_ancestor_name, names_equal
from form_model import EntityKind, FunctionEntity, ObjectEntity, SourceModel
from form_script import Diagnostic, DiagnosticEngine, Severity


logger = logging.getLogger(__name__)


class ChangeKind(IntEnum):
	UNKNOWN = 0
	VALUE = 1
	FUNCTION = 2
	OBJECT = 3
	FORM_COMPONENT = 4
	FORM = 5
	REFERENCE = 6


class ChangeState(IntEnum):
	NONE = 0
	DELETED = 1
	MODIFIED = 2
	CREATED = 3


MESSAGE_KEYS = {"comp_owner": "compOwner"}


# ---------------------------------------------------------------------------
# Change records


@dataclass
class Change:
	name: str
	kind: ChangeKind = ChangeKind.UNKNOWN
	state: ChangeState = ChangeState.NONE
	# owner path, e.g. ['Window'] for 'Window.Button1'
	owner: Optional[List[str]] = None

	@property
	def modified(self) -> bool:
		return self.state != ChangeState.NONE

	def modify(self) -> None:
		if not self.modified:
			self.state = ChangeState.MODIFIED

	def full_name(self) -> List[str]:
		return list(self.owner or []) + [self.name]

	def as_message(self) -> Dict[str, Any]:
		message: Dict[str, Any] = {}
		for item in fields(self):
			value = getattr(self, item.name)
			if value is None or (item.name == "name" and not value):
				continue
			if isinstance(value, IntEnum):
				value = int(value)
			elif isinstance(value, list):
				value = [entry.as_message() if isinstance(entry, Change) else entry for entry in value]
			message[MESSAGE_KEYS.get(item.name, item.name)] = value
		return message


@dataclass
class ValueChange(Change):
	kind: ChangeKind = ChangeKind.VALUE
	value: Optional[str] = None


@dataclass
class ReferenceChange(Change):
	kind: ChangeKind = ChangeKind.REFERENCE
	ref: Optional[List[str]] = None


@dataclass
class FunctionChange(Change):
	kind: ChangeKind = ChangeKind.FUNCTION
	args: List[Change] = field(default_factory=list)

	def push_change(self, change: Change) -> None:
		if change.modified:
			self.modify()
		self.args.append(change)


@dataclass
class ObjectChange(Change):
	kind: ChangeKind = ChangeKind.OBJECT


@dataclass
class ComponentChange(ObjectChange):
	kind: ChangeKind = ChangeKind.FORM_COMPONENT
	# constructor name
	type: Optional[str] = None
	# constructor arguments, only when they changed
	args: Optional[List[Change]] = None
	comp_owner: Optional[List[str]] = None


@dataclass
class FormRecord(ComponentChange):
	kind: ChangeKind = ChangeKind.FORM


class FormChange(list):
	"""Changes belonging to one form, in discovery order."""

	def as_message(self) -> List[Dict[str, Any]]:
		return [change.as_message() for change in self]


class Forms:
	def __init__(self) -> None:
		self.variables: List[Change] = []
		self.diagnostics: List[Diagnostic] = []

	def push_change(self, change: Change) -> None:
		self.variables.append(change)

	def get_form_names(self) -> List[str]:
		return [".".join(change.full_name()) for change in self.variables if change.kind == ChangeKind.FORM]

	def get_form_update(self, form_name: Sequence[str]) -> FormChange:
		"""Modified entries of the form and of everything declared under it."""
		selected: List[Change] = []
		collected: List[List[str]] = []
		for change in self.variables:
			full_name = change.full_name()
			if names_equal(full_name, form_name) or self._in_form(change, form_name, collected):
				selected.append(change)
				collected.append(full_name)
		return FormChange(change for change in selected if change.modified)

	@staticmethod
	def _in_form(change: Change, form_name: Sequence[str], collected: List[List[str]]) -> bool:
		if change.kind == ChangeKind.FORM_COMPONENT:
			path = change.comp_owner
		else:
			path = change.owner
		if not path:
			return False
		if names_equal(path, form_name) or is_ancestor_name(form_name, path):
			return True
		return any(names_equal(path, name) for name in collected)

	def as_message(self) -> List[Dict[str, Any]]:
		return [change.as_message() for change in self.variables]


ChangeOwner = Union[Forms, FunctionChange]


# ---------------------------------------------------------------------------
# Differ


class SnapshotDiffer:
	"""One diff pass over private copies of the old and new models."""

	def __init__(self, old: Optional[SourceModel], new: Optional[SourceModel], resolver: ConstantResolver = DEFAULT_RESOLVER) -> None:
		self.old = old.copy() if old is not None else SourceModel()
		self.new = new.copy() if new is not None else SourceModel()
		self.resolver = resolver
		self.forms = Forms()
		self.diagnostics = DiagnosticEngine()

	def run(self) -> Forms:
		self._compare_lists(list(self.old.iter_variables()), list(self.new.iter_variables()), self.forms)
		self.forms.diagnostics = list(self.diagnostics.items)
		return self.forms

	def _compare_lists(self, old_items: List[ObjectEntity], new_items: List[ObjectEntity], owner: ChangeOwner) -> None:
		pool = list(new_items)
		for item in old_items:
			self._compare(item, self._take(item, pool), owner)
		for item in pool:
			self._compare(None, item, owner)

	def _take(self, item: ObjectEntity, pool: List[ObjectEntity]) -> Optional[ObjectEntity]:
		name = self.old.full_name(item)
		for index, candidate in enumerate(pool):
			if names_equal(self.new.full_name(candidate), name):
				return pool.pop(index)
		return None

	def _compare(self, old: Optional[ObjectEntity], new: Optional[ObjectEntity], owner: ChangeOwner) -> None:
		if new is None:
			if old is not None:
				self._deleted(old, owner)
			return
		if old is not None and old.kind != new.kind:
			self.diagnostics.report(
				Severity.INFO,
				f"{'.'.join(self.new.full_name(new))} changed from {old.kind.name.lower()} to {new.kind.name.lower()}",
			)
			self._deleted(old, owner)
			old = None
		kind = new.kind
		if kind == EntityKind.OBJECT:
			record: Change = self._compare_objects(old, new)
		elif kind == EntityKind.FUNCTION:
			record = self._function_record(old, new)
		elif kind == EntityKind.VALUE:
			record = ValueChange(new.name, value=new.value)
			if old is None:
				record.state = ChangeState.CREATED
			elif old.value != new.value:
				record.modify()
		else:
			target = self.new.target_of(new)
			record = ReferenceChange(new.name, ref=self.new.full_name(target) if target is not None else None)
			if old is None:
				record.state = ChangeState.CREATED
			elif self.old.full_name(old, dereference=True) != self.new.full_name(new, dereference=True):
				record.modify()
		record.owner = self._owner_name(self.new, new)
		owner.push_change(record)

	def _compare_objects(self, old: Optional[ObjectEntity], new: ObjectEntity) -> Change:
		state = ChangeState.NONE if old is not None else ChangeState.CREATED
		initializer = self.new.initializer_of(new)
		if initializer is not None:
			init_name = self.new.full_name(initializer)
			if self.resolver.is_form_constructor(init_name):
				return self._component_record(FormRecord(new.name, state=state), old, initializer)
			if self.resolver.is_component_constructor(init_name[-1]):
				return self._component_record(ComponentChange(new.name, state=state), old, initializer)
		record = ObjectChange(new.name, state=state)
		if old is not None and self._initializer_name(self.old, old) != self._initializer_name(self.new, new):
			record.modify()
		return record

	def _component_record(self, record: ComponentChange, old: Optional[ObjectEntity], initializer: ObjectEntity) -> ComponentChange:
		record.type = initializer.name
		init_owner = self.new.owner_of(initializer)
		if record.kind == ChangeKind.FORM_COMPONENT and init_owner is not None:
			record.comp_owner = self.new.full_name(init_owner, dereference=True)
		old_init = self.old.initializer_of(old) if old is not None else None
		if not isinstance(old_init, FunctionEntity):
			old_init = None
		if isinstance(initializer, FunctionEntity):
			function = self._function_record(old_init, initializer)
			if old_init is not None and old_init.name != initializer.name:
				function.modify()
			if function.modified:
				record.args = function.args
				record.modify()
		return record

	def _function_record(self, old: Optional[ObjectEntity], new: ObjectEntity) -> FunctionChange:
		record = FunctionChange(new.name, state=ChangeState.NONE if old is not None else ChangeState.CREATED)
		record.owner = self._owner_name(self.new, new)
		old_args = self.old.args_of(old) if isinstance(old, FunctionEntity) else []
		new_args = self.new.args_of(new) if isinstance(new, FunctionEntity) else []
		self._compare_lists(old_args, new_args, record)
		return record

	def _deleted(self, old: ObjectEntity, owner: ChangeOwner) -> None:
		kind = old.kind
		if kind == EntityKind.OBJECT:
			record: Change = ObjectChange(old.name)
			initializer = self.old.initializer_of(old)
			if initializer is not None:
				if self.resolver.is_component_constructor(initializer.name):
					record = ComponentChange(old.name, type=initializer.name)
					init_owner = self.old.owner_of(initializer)
					if init_owner is not None:
						record.comp_owner = self.old.full_name(init_owner, dereference=True)
				elif self.resolver.is_form_constructor(self.old.full_name(initializer)):
					record = FormRecord(old.name, type=initializer.name)
		elif kind == EntityKind.FUNCTION:
			record = FunctionChange(old.name)
		elif kind == EntityKind.VALUE:
			record = ValueChange(old.name)
		else:
			record = ReferenceChange(old.name)
		record.state = ChangeState.DELETED
		record.owner = self._owner_name(self.old, old)
		owner.push_change(record)

	@staticmethod
	def _owner_name(model: SourceModel, entity: ObjectEntity) -> Optional[List[str]]:
		owner = model.owner_of(entity)
		return model.full_name(owner) if owner is not None else None

	@staticmethod
	def _initializer_name(model: SourceModel, entity: ObjectEntity) -> Optional[List[str]]:
		initializer = model.initializer_of(entity)
		return model.full_name(initializer) if initializer is not None else None


def make_changes(
	old: Optional[SourceModel],
	new: Optional[SourceModel],
	resolver: ConstantResolver = DEFAULT_RESOLVER,
	sink: Optional[Callable[[str], None]] = None,
) -> Forms:
	forms = SnapshotDiffer(old, new, resolver).run()
	source = new if new is not None else old
	logger.debug(
		"diff %s: %d records, %d changed",
		source.file_name if source is not None else "<none>",
		len(forms.variables),
		sum(1 for change in forms.variables if change.modified),
	)
	if sink is not None:
		for diagnostic in forms.diagnostics:
			sink(diagnostic.format())
	return forms
