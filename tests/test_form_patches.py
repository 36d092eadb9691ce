from __future__ import annotations

import pytest

from conftest import COMPONENT_SOURCE, FORM_SOURCE, NESTED_SOURCE, build_source
from form_constants import DEFAULT_RESOLVER, Layout
from form_model import EntityNotFound
from form_patches import PatchGenerator, TextChange
from form_sync import apply_text_changes


LAYOUT = Layout(left=1, top=2, width=3, height=4)


def _generator(text, resolver=DEFAULT_RESOLVER):
	return PatchGenerator(build_source(text).model, resolver)


def _apply(text, change):
	assert isinstance(change, TextChange)
	return apply_text_changes(text, [change])


class TestInsertComponent:
	def test_goes_before_first_form_call(self):
		change = _generator(FORM_SOURCE).insert_component("f", "Button", "NewButton", LAYOUT)
		assert change.pos == change.end
		assert _apply(FORM_SOURCE, change) == (
			'let f = NewForm();\nf.Caption = "a";\n'
			'let Button1 = f.NewButton();\nButton1.SetLayout(1, 2, 3, 4);\n'
			'\nf.Show();\n'
		)

	def test_picks_free_name(self):
		source = FORM_SOURCE.replace("\n\n", "\nlet Button1 = f.NewButton();\n\n")
		change = _generator(source).insert_component("f", "Button", "NewButton", LAYOUT, ['"ok"'])
		assert "let Button2 = f.NewButton(\"ok\");" in change.new_text

	def test_unknown_type_produces_empty_text(self):
		change = _generator(FORM_SOURCE).insert_component("f", "Thing", "NewThing", LAYOUT)
		assert change.new_text == ""

	def test_unknown_owner_leaves_model_untouched(self):
		generator = _generator(FORM_SOURCE)
		generator.insert_component("g", "Button", "NewButton", LAYOUT)
		assert not generator.model.exists(["g"])


class TestLayoutProperties:
	def test_left(self):
		change = _generator(COMPONENT_SOURCE).change_property("b", "Left", "10")
		assert "b.SetLayout(10, 2, 3, 4);" in _apply(COMPONENT_SOURCE, change)

	def test_top_keeps_separator_space(self):
		change = _generator(COMPONENT_SOURCE).change_property("b", "Top", "20")
		assert change.new_text == " 20"
		assert "b.SetLayout(1, 20, 3, 4);" in _apply(COMPONENT_SOURCE, change)

	def test_width_keeps_separator_space(self):
		change = _generator(COMPONENT_SOURCE).change_property("b", "Width", "30")
		assert change.new_text == " 30"
		assert "b.SetLayout(1, 2, 30, 4);" in _apply(COMPONENT_SOURCE, change)

	def test_height_has_no_leading_space(self):
		change = _generator(COMPONENT_SOURCE).change_property("b", "Height", "40")
		assert change.new_text == "40"
		assert "b.SetLayout(1, 2, 3,40);" in _apply(COMPONENT_SOURCE, change)

	def test_without_layout_call(self):
		source = 'let f = NewForm();\nlet b = f.NewButton("x");\n'
		change = _generator(source).change_property("b", "Left", "5")
		assert _apply(source, change) == 'let f = NewForm();\nlet b = f.NewButton("x");\nb.Left = 5;\n'


class TestPrimaryArguments:
	def test_replaces_caption_argument(self):
		change = _generator(COMPONENT_SOURCE).change_property("b", "Caption", "'Hi'")
		assert "let b = f.NewButton('Hi');" in _apply(COMPONENT_SOURCE, change)

	def test_pads_missing_arguments(self):
		resolver = DEFAULT_RESOLVER.with_primary_args({"Hint": 3})
		change = _generator(COMPONENT_SOURCE, resolver).change_property("b", "hint", "'h'")
		assert "f.NewButton(\"x\", '', '', 'h');" in _apply(COMPONENT_SOURCE, change)


class TestFreeProperties:
	def test_missing_property_follows_component_statements(self):
		change = _generator(COMPONENT_SOURCE).change_property("b", "Visible", "false")
		assert "b.SetLayout(1, 2, 3, 4);\nb.Visible = false;\n\nf.Show();" in _apply(COMPONENT_SOURCE, change)

	def test_existing_value_is_replaced(self):
		source = COMPONENT_SOURCE.replace("\n\n", "\nb.Visible = true;\n\n")
		change = _generator(source).change_property("b", "Visible", "false")
		assert change.new_text == " false"
		assert "b.Visible = false;" in _apply(source, change)

	def test_form_property_follows_declaration(self):
		change = _generator(COMPONENT_SOURCE).change_property("f", "Width", "300")
		assert _apply(COMPONENT_SOURCE, change).startswith("let f = NewForm();\nf.Width = 300;\nlet b")

	def test_missing_property_of_form_held_component(self):
		source = 'let f = NewForm();\nf.Show();\nf.btn = f.NewButton("x");\nf.btn.Visible = true;\n'
		result = _apply(source, _generator(source).change_property("f.btn", "Color", "1"))
		assert result == source + "f.btn.Color = 1;\n"
		assert result.index("f.btn.Color") > result.index("f.btn = f.NewButton")

	def test_reference_property_is_rewritten(self):
		source = COMPONENT_SOURCE.replace("\n\n", "\nb.Target = f;\n\n")
		change = _generator(source).change_property("b", "Target", "g")
		assert change.new_text == "\nb.Target = g;"
		assert _apply(source, change) == source.replace("b.Target = f;", "b.Target = g;")

	def test_function_property_becomes_call(self):
		source = COMPONENT_SOURCE.replace("\n\n", "\nb.Click(1);\n\n")
		change = _generator(source).change_property("b", "Click", "2")
		assert change.new_text == "\nb.Click(2);"
		assert _apply(source, change) == source.replace("b.Click(1);", "b.Click(2);")

	def test_unknown_component(self):
		with pytest.raises(EntityNotFound):
			_generator(COMPONENT_SOURCE).change_property("zz", "Left", "1")


class TestDelete:
	def test_related_entities(self):
		generator = _generator(NESTED_SOURCE)
		names = {".".join(generator.model.full_name(e)) for e in generator.related_entities("C")}
		assert names == {"C", "C.P", "C.G", "C.G.Q"}

	def test_removes_every_related_statement(self):
		changes = _generator(NESTED_SOURCE).delete_component("C")
		assert len(changes) == 3
		assert apply_text_changes(NESTED_SOURCE, changes) == 'let f = NewForm();\nlet D = f.NewButton();\n'

	def test_unknown_component_yields_nothing(self):
		assert _generator(NESTED_SOURCE).delete_component("Nope") == []

	def test_first_declarator_takes_following_comma(self):
		source = "let a = 1, c = 2;\n"
		result = apply_text_changes(source, _generator(source).delete_component("a"))
		assert result == "let c = 2;\n"
		assert not build_source(result).diagnostics

	def test_last_declarator_takes_preceding_comma(self):
		source = "let a = 1, c = 2;\n"
		result = apply_text_changes(source, _generator(source).delete_component("c"))
		assert result == "let a = 1\n"
		assert not build_source(result).diagnostics


class TestForwardReferences:
	def test_children_of_shadowed_owner_are_found(self):
		source = 'let x = f;\nlet f = NewForm();\nf.Caption = "a";\nf.Show();\n'
		change = _generator(source).insert_component("f", "Button", "NewButton", LAYOUT)
		assert _apply(source, change) == (
			'let x = f;\nlet f = NewForm();\nf.Caption = "a";\n'
			'let Button1 = f.NewButton();\nButton1.SetLayout(1, 2, 3, 4);\n'
			'f.Show();\n'
		)
