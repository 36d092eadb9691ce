from __future__ import annotations

from conftest import COMPONENT_SOURCE, FORM_SOURCE, NESTED_SOURCE, build_source
from form_differ import ChangeKind, ChangeState, FunctionChange, ValueChange, make_changes
from form_script import Severity


WITH_BUTTON = FORM_SOURCE.replace("\n\n", "\nlet b = f.NewButton(\"x\");\nb.SetLayout(1, 2, 3, 4);\n\n")


def _diff(old_text, new_text):
	old = build_source(old_text).model if old_text is not None else None
	new = build_source(new_text).model if new_text is not None else None
	return make_changes(old, new)


class TestStates:
	def test_identical_sources_have_no_changes(self):
		forms = _diff(COMPONENT_SOURCE, COMPONENT_SOURCE)
		assert forms.variables
		assert not [change for change in forms.variables if change.modified]
		assert not forms.get_form_update(["f"])

	def test_everything_is_created_without_previous_model(self):
		forms = _diff(None, FORM_SOURCE)
		assert {change.state for change in forms.variables} == {ChangeState.CREATED}
		assert forms.get_form_names() == ["f"]

	def test_everything_is_deleted_without_new_model(self):
		forms = _diff(FORM_SOURCE, None)
		assert {change.state for change in forms.variables} == {ChangeState.DELETED}
		assert forms.variables[0].kind == ChangeKind.FORM

	def test_caption_change(self):
		forms = _diff(FORM_SOURCE, FORM_SOURCE.replace('"a"', '"b"'))
		update = forms.get_form_update(["f"])
		assert len(update) == 1
		change = update[0]
		assert isinstance(change, ValueChange)
		assert change.name == "Caption"
		assert change.state == ChangeState.MODIFIED
		assert change.owner == ["f"]
		assert change.as_message() == {"name": "Caption", "kind": 1, "state": 2, "owner": ["f"], "value": "b"}


class TestComponents:
	def test_new_component_record(self):
		forms = _diff(FORM_SOURCE, WITH_BUTTON)
		update = forms.get_form_update(["f"])
		assert [change.name for change in update] == ["b", "SetLayout"]
		button = update[0].as_message()
		assert button == {
			"name": "b",
			"kind": int(ChangeKind.FORM_COMPONENT),
			"state": int(ChangeState.CREATED),
			"type": "NewButton",
			"args": [{"kind": 1, "state": 3, "value": "x"}],
			"compOwner": ["f"],
		}
		layout = update[1]
		assert isinstance(layout, FunctionChange)
		assert layout.owner == ["b"]
		assert [arg.value for arg in layout.args] == ["1", "2", "3", "4"]

	def test_changed_constructor_argument(self):
		forms = _diff(COMPONENT_SOURCE, COMPONENT_SOURCE.replace('"x"', '"y"'))
		update = forms.get_form_update(["f"])
		assert [change.name for change in update] == ["b"]
		assert update[0].state == ChangeState.MODIFIED
		assert update[0].args[0].value == "y"
		assert update[0].args[0].state == ChangeState.MODIFIED

	def test_unchanged_component_omits_args(self):
		forms = _diff(COMPONENT_SOURCE, COMPONENT_SOURCE)
		button = [change for change in forms.variables if change.name == "b"][0]
		assert button.args is None
		assert "args" not in button.as_message()

	def test_form_update_follows_nested_owners(self):
		source = NESTED_SOURCE + "let g = NewForm();\nlet E = g.NewButton();\n"
		forms = _diff(None, source)
		names = [".".join(change.full_name()) for change in forms.get_form_update(["f"])]
		assert names[:2] == ["f", "C"]
		for expected in ("C.P", "C.G", "C.G.Q", "D"):
			assert expected in names
		assert "E" not in names
		assert "g" not in names
		assert forms.get_form_names() == ["f", "g"]


class TestReferences:
	OLD = "let g = 1;\nlet h = 2;\nlet a = g;\n"

	def test_reference_to_other_name_is_modified(self):
		forms = _diff(self.OLD, self.OLD.replace("a = g", "a = h"))
		changed = [change for change in forms.variables if change.modified]
		assert len(changed) == 1
		assert changed[0].kind == ChangeKind.REFERENCE
		assert changed[0].ref == ["h"]

	def test_same_reference_is_unchanged(self):
		forms = _diff(self.OLD, self.OLD)
		assert not [change for change in forms.variables if change.modified]

	def test_kind_change_is_delete_then_create(self):
		forms = _diff("let x = 1;\n", "let y = 2;\nlet x = y;\n")
		summary = [(change.name, change.kind, change.state) for change in forms.variables]
		assert summary == [
			("x", ChangeKind.VALUE, ChangeState.DELETED),
			("x", ChangeKind.REFERENCE, ChangeState.CREATED),
			("y", ChangeKind.VALUE, ChangeState.CREATED),
		]
		assert forms.diagnostics[0].severity == Severity.INFO
		assert "changed from value to reference" in forms.diagnostics[0].message


class TestIsolation:
	def test_models_are_not_mutated(self):
		old = build_source(FORM_SOURCE).model
		new = build_source(COMPONENT_SOURCE).model
		before = (old.to_dict(), new.to_dict())
		make_changes(old, new)
		assert (old.to_dict(), new.to_dict()) == before

	def test_sink_receives_diagnostics(self):
		lines = []
		make_changes(build_source("let x = 1;\n").model, build_source("let y = 2;\nlet x = y;\n").model, sink=lines.append)
		assert lines == ["INFO x changed from value to reference"]
