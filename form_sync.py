"""Keeps parsed form scripts in sync with the visual designer.

The engine owns one model per open file. Text updates are parsed, diffed
against the previous model and turned into an ``update`` message for the
selected form; designer requests are validated and turned into text edits.
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from form_constants import DEFAULT_RESOLVER, Layout, new_form_declaration, split_name
from form_differ import FormChange, Forms, make_changes
from form_model import FormModelError, SourceModel
from form_patches import PatchGenerator, TextChange
from form_script import parse_script
from model_builder import BuildResult, build_model


logger = logging.getLogger(__name__)


OUT_UPDATE = "update"
IN_NEW_COMPONENT = "newcomponent"
IN_COMPONENTS_CHANGES = "componentschanges"
IN_DELETE_COMPONENT = "deletecomponent"


# ---------------------------------------------------------------------------
# Configuration


class SyncSettings(BaseSettings):
	model_config = SettingsConfigDict(
		env_prefix="FORMSYNC_",
		case_sensitive=False,
		env_file=".env",
		env_file_encoding="utf-8",
		extra="ignore",
	)

	parse_delay_ms: int = Field(default=1500, ge=0, description="Debounce delay before reparsing an edited document.")
	update_on_enter: bool = Field(default=True, description="Reparse immediately when a line break is typed.")
	update_on_semicolon: bool = Field(default=True, description="Reparse immediately when ';' is typed.")
	dump_dir: Optional[Path] = Field(default=None, description="Directory for forms.json / model.json dumps.")
	primary_args: Dict[str, int] = Field(default_factory=dict, description="Extra property -> constructor argument index entries.")


# ---------------------------------------------------------------------------
# Designer messages


class DesignerMessage(BaseModel):
	type: str
	filename: str = ""
	message: Any = None


class NewComponentMessage(BaseModel):
	name: str
	type: str
	layout: Layout
	args: Optional[List[str]] = None
	owner: str


class PropertyChangeMessage(BaseModel):
	component: str
	property: str
	value: str

	@field_validator("value", mode="before")
	@classmethod
	def _stringify(cls, value: Any) -> Any:
		if isinstance(value, bool):
			return "true" if value else "false"
		if isinstance(value, (int, float)):
			return str(value)
		return value


class DeleteComponentMessage(BaseModel):
	fullname: str


@dataclass
class SyncUpdate:
	build: BuildResult
	forms: Forms
	form_change: Optional[FormChange]
	message: Optional[Dict[str, Any]]


def apply_text_changes(text: str, changes: List[TextChange]) -> str:
	"""Apply edits from the highest offset down so earlier offsets stay valid."""
	for change in sorted(changes, key=lambda item: (item.pos, item.end), reverse=True):
		text = text[:change.pos] + change.new_text + text[change.end:]
	return text


def _as_list(payload: Any) -> List[Any]:
	if payload is None:
		return []
	return payload if isinstance(payload, list) else [payload]


class FormSyncEngine:
	def __init__(self, settings: Optional[SyncSettings] = None, sink: Optional[Callable[[str], None]] = None) -> None:
		self.settings = settings or SyncSettings()
		self.resolver = DEFAULT_RESOLVER.with_primary_args(self.settings.primary_args)
		self.sink = sink
		self.sources: Dict[str, SourceModel] = {}
		self.current_form: Optional[str] = None
		self.current_file = ""
		# file key -> (text, file name, monotonic time of the last edit)
		self._pending: Dict[str, Tuple[str, str, float]] = {}

	@staticmethod
	def _key(file_name: str) -> str:
		return os.path.normpath(file_name) if file_name else ""

	def model_for(self, file_name: str) -> Optional[SourceModel]:
		return self.sources.get(self._key(file_name))

	# Source side ---------------------------------------------------------

	def parse(self, text: str, file_name: str = "") -> BuildResult:
		parsed = parse_script(text, file_name)
		result = build_model(parsed.tree, self.resolver)
		result.diagnostics = list(parsed.diagnostics) + result.diagnostics
		if self.sink is not None:
			for diagnostic in result.diagnostics:
				self.sink(diagnostic.format())
		return result

	def open_form(self, text: str, file_name: str = "") -> List[str]:
		result = self.parse(text, file_name)
		self.sources[self._key(file_name)] = result.model
		self.current_file = file_name
		return make_changes(None, result.model, self.resolver).get_form_names()

	def select_form(self, form_name: str) -> None:
		self.current_form = form_name

	def new_form(self, form_name: str) -> TextChange:
		self.current_form = form_name
		return TextChange(0, 0, new_form_declaration(form_name))

	def should_reparse(self, inserted_text: str) -> bool:
		if self.settings.update_on_enter and "\n" in inserted_text:
			return True
		return self.settings.update_on_semicolon and inserted_text == ";"

	def note_edit(self, text: str, file_name: str = "", inserted_text: str = "", now: Optional[float] = None) -> Optional[SyncUpdate]:
		"""Record an edited document.

		A line break or ``;`` (per settings) reparses right away; any other edit
		waits until :meth:`flush` finds it older than ``parse_delay_ms``.
		"""
		now = time.monotonic() if now is None else now
		self._pending[self._key(file_name)] = (text, file_name, now)
		if self.should_reparse(inserted_text):
			return self.update_source(text, file_name)
		return None

	def flush(self, now: Optional[float] = None) -> List[SyncUpdate]:
		now = time.monotonic() if now is None else now
		delay = self.settings.parse_delay_ms / 1000
		updates: List[SyncUpdate] = []
		for text, file_name, edited_at in list(self._pending.values()):
			if now - edited_at >= delay:
				updates.append(self.update_source(text, file_name))
		return updates

	def update_source(self, text: str, file_name: str = "") -> SyncUpdate:
		key = self._key(file_name)
		self._pending.pop(key, None)
		result = self.parse(text, file_name)
		previous = self.sources.get(key)
		self.sources[key] = result.model
		self.current_file = file_name
		forms = make_changes(previous, result.model, self.resolver, self.sink)
		form_change: Optional[FormChange] = None
		message: Optional[Dict[str, Any]] = None
		if self.current_form:
			form_change = forms.get_form_update(split_name(self.current_form))
			message = {"type": OUT_UPDATE, "info": form_change.as_message(), "filename": file_name}
			logger.debug("out message: %s", json.dumps(message))
		if self.settings.dump_dir is not None:
			self._dump(result.model, forms)
		return SyncUpdate(build=result, forms=forms, form_change=form_change, message=message)

	def _dump(self, model: SourceModel, forms: Forms) -> None:
		target = Path(self.settings.dump_dir)
		target.mkdir(parents=True, exist_ok=True)
		(target / "forms.json").write_text(json.dumps(forms.as_message(), indent=2), encoding="utf-8")
		(target / "model.json").write_text(json.dumps(model.to_dict(), indent=2), encoding="utf-8")

	# Designer side -------------------------------------------------------

	def handle_message(self, raw: Union[str, bytes, Dict[str, Any]]) -> List[TextChange]:
		try:
			if isinstance(raw, (str, bytes)):
				request = DesignerMessage.model_validate_json(raw)
			else:
				request = DesignerMessage.model_validate(raw)
		except ValidationError as exc:
			logger.warning("rejected designer message: %s", exc)
			return []
		logger.debug("in message: %s", request.type)
		model = self.model_for(request.filename)
		if model is None:
			logger.warning("cannot find source %s parsed by the model builder", request.filename)
			return []
		handlers = {
			IN_NEW_COMPONENT: self._new_component,
			IN_COMPONENTS_CHANGES: self._change_properties,
			IN_DELETE_COMPONENT: self._delete_components,
		}
		handler = handlers.get(request.type)
		if handler is None:
			logger.warning("unknown designer message type %r", request.type)
			return []
		changes = handler(PatchGenerator(model, self.resolver), request.message)
		if not changes:
			logger.warning("in message cannot be applied: %s", request.model_dump_json())
		return changes

	def _new_component(self, generator: PatchGenerator, payload: Any) -> List[TextChange]:
		try:
			request = NewComponentMessage.model_validate(payload)
			change = generator.insert_component(request.owner, request.name, request.type, request.layout, request.args)
		except (ValidationError, FormModelError) as exc:
			logger.warning("new component rejected: %s", exc)
			return []
		return [change] if change.new_text else []

	def _change_properties(self, generator: PatchGenerator, payload: Any) -> List[TextChange]:
		changes: List[TextChange] = []
		for item in _as_list(payload):
			try:
				request = PropertyChangeMessage.model_validate(item)
				change = generator.change_property(request.component, request.property, request.value)
			except (ValidationError, FormModelError) as exc:
				logger.warning("property change rejected: %s", exc)
				continue
			if change is not None:
				changes.append(change)
		return changes

	def _delete_components(self, generator: PatchGenerator, payload: Any) -> List[TextChange]:
		changes: List[TextChange] = []
		for item in _as_list(payload):
			try:
				request = DeleteComponentMessage.model_validate(item)
			except ValidationError as exc:
				logger.warning("delete request rejected: %s", exc)
				continue
			changes.extend(generator.delete_component(request.fullname))
		return changes
