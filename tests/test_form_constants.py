from __future__ import annotations

import pytest

from form_constants import (
	DEFAULT_RESOLVER,
	Layout,
	is_ancestor_name,
	names_equal,
	new_declaration,
	new_form_declaration,
	split_name,
)


class TestResolver:
	@pytest.mark.parametrize("name", ["NewButton", "NewLabel", "NewSeparator", "NewFurniture"])
	def test_component_constructors(self, name):
		assert DEFAULT_RESOLVER.is_component_constructor(name)

	def test_form_is_not_a_component(self):
		assert not DEFAULT_RESOLVER.is_component_constructor("NewForm")
		assert DEFAULT_RESOLVER.is_form_constructor(["NewForm"])
		assert not DEFAULT_RESOLVER.is_form_constructor(["f", "NewForm"])

	def test_layout_slots_ignore_case(self):
		assert [DEFAULT_RESOLVER.layout_arg_index(p) for p in ("Left", "TOP", "width", "Height")] == [0, 1, 2, 3]
		assert DEFAULT_RESOLVER.layout_arg_index("Caption") is None

	def test_primary_argument(self):
		assert DEFAULT_RESOLVER.primary_arg_index("Caption") == 0
		assert DEFAULT_RESOLVER.primary_arg_index("Hint") is None

	def test_extra_primary_arguments(self):
		resolver = DEFAULT_RESOLVER.with_primary_args({"Hint": 3})
		assert resolver.primary_arg_index("hint") == 3
		assert resolver.primary_arg_index("caption") == 0
		assert DEFAULT_RESOLVER.primary_arg_index("hint") is None

	@pytest.mark.parametrize(
		"name, expected",
		[
			(["AlignType", "Client"], "5"),
			(["AlignmentType", "Center"], "2"),
			(["WindowPosition", "Default"], "0"),
			(["AlignType", "Middle"], None),
			(["Colors", "Red"], None),
			(["a", "AlignType", "Client"], None),
		],
	)
	def test_constants(self, name, expected):
		assert DEFAULT_RESOLVER.resolve_constant(name) == expected


class TestNames:
	def test_names_equal_is_order_and_length_sensitive(self):
		assert names_equal(["a", "b"], ["a", "b"])
		assert not names_equal(["a", "b"], ["b", "a"])
		assert not names_equal(["a"], ["a", "b"])

	def test_ancestor_is_a_strict_prefix(self):
		assert is_ancestor_name(["a"], ["a", "b", "c"])
		assert is_ancestor_name(["a", "b"], ["a", "b", "c"])
		assert not is_ancestor_name(["a", "b"], ["a", "b"])
		assert not is_ancestor_name(["b"], ["a", "b"])

	def test_split_name(self):
		assert split_name("f.Props.Caption") == ["f", "Props", "Caption"]


class TestDeclarations:
	def test_component_declaration_with_layout(self):
		text = new_declaration("b", "NewButton", "'OK'", Layout(left=1, top=2, width=3, height=4))
		assert text == "let b = NewButton('OK');\nb.SetLayout(1, 2, 3, 4);\n"

	def test_form_declaration_has_no_layout(self):
		assert new_declaration("f", "NewForm", layout=Layout(left=1, top=2, width=3, height=4)) == "let f = NewForm();\n"

	def test_new_form_declaration(self):
		assert new_form_declaration("Main") == "let Main = NewForm();\n\nMain.Show();\n"
