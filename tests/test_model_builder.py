from __future__ import annotations

from conftest import COMPONENT_SOURCE, build_source
from form_model import EntityKind, FunctionEntity, Range
from form_script import Severity, parse_script
from model_builder import build_model, dotted_name, full_init_range


def _functions(model, name):
	return [e for e in model.iter_variables() if isinstance(e, FunctionEntity) and e.name == name]


class TestRanges:
	SOURCE = 'let f = NewForm(); f.Caption = "a";'

	def test_declaration(self):
		model = build_source(self.SOURCE).model
		f = model.find(["f"])
		assert f.range == Range(3, 17)
		assert f.init_range == Range(0, 18)
		constructor = model.initializer_of(f)
		assert isinstance(constructor, FunctionEntity)
		assert constructor.range == Range(7, 17)

	def test_assignment(self):
		model = build_source(self.SOURCE).model
		caption = model.find(["f", "Caption"])
		assert caption.kind == EntityKind.VALUE
		assert caption.range == Range(18, 34)
		assert caption.value_range == Range(30, 34)
		assert caption.init_range == Range(18, 35)

	def test_full_init_range_without_terminator(self):
		tree = parse_script("let a = b").tree
		declaration = tree.statements[0].declaration_list.declarations[0]
		assert full_init_range(declaration.initializer) == Range(7, 9)

	def test_declarator_ranges_share_one_comma(self):
		model = build_source("let a = 1, b = 2, c = 3;\n").model
		assert [model.find([name]).init_range for name in "abc"] == [Range(3, 10), Range(10, 17), Range(16, 24)]

	def test_dotted_name(self):
		tree = parse_script("a.b.c;").tree
		assert dotted_name(tree.statements[0].expression) == ["a", "b", "c"]


class TestValues:
	def test_constants_numbers_and_booleans(self):
		source = "let f = NewForm();\nf.Align = AlignType.Client;\nf.W = 0x10;\nf.V = true;\nf.H = false;\n"
		model = build_source(source).model
		assert model.find(["f", "Align"]).value == "5"
		assert model.find(["f", "W"]).value == "16"
		assert model.find(["f", "V"]).value == "true"
		assert model.find(["f", "H"]).value == "false"

	def test_forward_reference_is_pruned(self):
		result = build_source("let a = b;\n")
		model = result.model
		assert [model.full_name(e) for e in model.iter_variables()] == [["a"]]
		a = model.find(["a"])
		assert a.kind == EntityKind.REFERENCE
		assert model.full_name(a, dereference=True) == ["b"]

	def test_object_literal_children(self):
		model = build_source("let o = {x: 1, y: {z: true}};\n").model
		o = model.find(["o"])
		z = model.find(["o", "y", "z"])
		assert model.owner_of(z) is model.find(["o", "y"])
		assert z.value == "true"
		assert z.init_range == o.init_range
		assert model.find(["o", "x"]).value == "1"


class TestCalls:
	def test_constructor_arguments(self):
		model = build_source(COMPONENT_SOURCE).model
		b = model.find(["b"])
		constructor = model.initializer_of(b)
		assert constructor.name == "NewButton"
		assert model.full_name(model.owner_of(constructor)) == ["f"]
		assert [arg.value for arg in model.args_of(constructor)] == ["x"]

	def test_each_call_is_a_separate_function(self):
		source = "let f = NewForm();\nf.SetLayout(1, 2, 3, 4);\nf.SetLayout(5, 6, 7, 8);\n"
		model = build_source(source).model
		first, second = _functions(model, "SetLayout")
		assert [a.value for a in model.args_of(first)] == ["1", "2", "3", "4"]
		assert [a.value for a in model.args_of(second)] == ["5", "6", "7", "8"]

	def test_reference_arguments(self):
		source = "let f = NewForm();\nlet g = NewForm();\nf.Attach(g, AlignType.Top);\n"
		model = build_source(source).model
		attach = _functions(model, "Attach")[0]
		reference, constant = model.args_of(attach)
		assert model.full_name(reference, dereference=True) == ["g"]
		assert constant.value == "1"


class TestSkippedAndUnsupported:
	def test_control_flow_and_functions_are_skipped(self):
		result = build_source("if (a) { b = 1; }\nfunction g() { c = 2; }\nlet d = 1;\n")
		assert [e.name for e in result.model.iter_variables()] == ["d"]
		assert not result.diagnostics

	def test_compound_operator_is_reported(self):
		result = build_source("a + 2;\n")
		assert len(result.diagnostics) == 1
		diagnostic = result.diagnostics[0]
		assert diagnostic.severity == Severity.WARNING
		assert "operator PLUS is missed" in diagnostic.message

	def test_expression_without_effect(self):
		result = build_source("let f = NewForm();\nf;\n")
		assert "expression has no effect" in result.diagnostics[0].message

	def test_null_is_unsupported(self):
		result = build_source("let a = null;\n")
		assert "NullKeyword" in result.diagnostics[0].message

	def test_binding_pattern_stops_the_build(self):
		result = build_source("let x = 1;\nlet [a] = y;\nlet z = 2;\n")
		assert result.has_errors
		assert "is not an identifier" in result.diagnostics[-1].message
		names = [e.name for e in result.model.iter_variables()]
		assert "x" in names
		assert "z" not in names

	def test_sink_receives_formatted_diagnostics(self):
		lines = []
		build_model(parse_script("a + 2;\n").tree, sink=lines.append)
		assert len(lines) == 1
		assert lines[0].startswith("WARNING ")
