from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from form_constants import split_name
from form_differ import make_changes
from form_script import Diagnostic
from form_sync import (
	IN_COMPONENTS_CHANGES,
	IN_DELETE_COMPONENT,
	IN_NEW_COMPONENT,
	DeleteComponentMessage,
	FormSyncEngine,
	NewComponentMessage,
	PropertyChangeMessage,
	apply_text_changes,
)


app = FastAPI(title="Form Script Sync", version="1.0.0")

app.add_middleware(
	CORSMiddleware,
	allow_origins=["*"],
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

REQUEST_FILE = "request.js"


class ParseRequest(BaseModel):
	source: str
	filename: str = REQUEST_FILE


class DiffRequest(BaseModel):
	# None means "no previous version": everything is reported as created
	old_source: Optional[str] = None
	new_source: Optional[str] = None
	form: Optional[str] = None


class NewComponentRequest(BaseModel):
	source: str
	message: NewComponentMessage


class PropertiesRequest(BaseModel):
	source: str
	changes: List[PropertyChangeMessage]


class DeleteRequest(BaseModel):
	source: str
	components: List[DeleteComponentMessage]


def _diagnostic_json(diagnostic: Diagnostic) -> Dict[str, Any]:
	span = None
	if diagnostic.span is not None:
		span = {
			"line": diagnostic.span.start.line,
			"column": diagnostic.span.start.column,
			"start": diagnostic.span.start.index,
			"end": diagnostic.span.end.index,
		}
	return {
		"severity": diagnostic.severity.name,
		"message": diagnostic.message,
		"hint": diagnostic.hint,
		"span": span,
	}


def _patch(source: str, message_type: str, payload: Any) -> Dict[str, Any]:
	engine = FormSyncEngine()
	engine.open_form(source, REQUEST_FILE)
	edits = engine.handle_message({"type": message_type, "filename": REQUEST_FILE, "message": payload})
	return {
		"edits": [edit.as_message() for edit in edits],
		"text": apply_text_changes(source, edits),
	}


@app.get("/", response_class=HTMLResponse)
def index() -> HTMLResponse:
	return HTMLResponse(
		"<h2>Form Script Sync API</h2><p>POST <code>/api/parse</code> with JSON: <code>{\"source\": \"...\"}</code></p>"
	)


@app.get("/health")
def health() -> Dict[str, str]:
	return {"status": "ok"}


@app.post("/api/parse")
def parse_source(req: ParseRequest) -> Dict[str, Any]:
	engine = FormSyncEngine()
	result = engine.parse(req.source, req.filename)
	forms = make_changes(None, result.model, engine.resolver)
	return {
		"diagnostic_count": len(result.diagnostics),
		"diagnostics": [_diagnostic_json(d) for d in result.diagnostics],
		"variables": result.model.to_dict()["variables"],
		"forms": forms.get_form_names(),
	}


@app.post("/api/diff")
def diff_sources(req: DiffRequest) -> Dict[str, Any]:
	engine = FormSyncEngine()
	old = engine.parse(req.old_source, REQUEST_FILE) if req.old_source is not None else None
	new = engine.parse(req.new_source, REQUEST_FILE) if req.new_source is not None else None
	forms = make_changes(old.model if old else None, new.model if new else None, engine.resolver)
	diagnostics = (old.diagnostics if old else []) + (new.diagnostics if new else []) + forms.diagnostics
	response: Dict[str, Any] = {
		"changes": forms.as_message(),
		"forms": forms.get_form_names(),
		"diagnostics": [_diagnostic_json(d) for d in diagnostics],
	}
	if req.form:
		response["form_change"] = forms.get_form_update(split_name(req.form)).as_message()
	return response


@app.post("/api/patch/new-component")
def new_component(req: NewComponentRequest) -> Dict[str, Any]:
	return _patch(req.source, IN_NEW_COMPONENT, req.message.model_dump())


@app.post("/api/patch/properties")
def change_properties(req: PropertiesRequest) -> Dict[str, Any]:
	return _patch(req.source, IN_COMPONENTS_CHANGES, [change.model_dump() for change in req.changes])


@app.post("/api/patch/delete")
def delete_components(req: DeleteRequest) -> Dict[str, Any]:
	return _patch(req.source, IN_DELETE_COMPONENT, [item.model_dump() for item in req.components])
