from __future__ import annotations

from typing import Callable

import pytest

from form_script import parse_script
from model_builder import BuildResult, build_model


FORM_SOURCE = 'let f = NewForm();\nf.Caption = "a";\n\nf.Show();\n'

COMPONENT_SOURCE = (
	'let f = NewForm();\n'
	'let b = f.NewButton("x");\n'
	'b.SetLayout(1, 2, 3, 4);\n'
	'\n'
	'f.Show();\n'
)

NESTED_SOURCE = (
	'let f = NewForm();\n'
	'let C = f.NewGroup();\n'
	'C.P = 1;\n'
	'C.G = {Q: 2};\n'
	'let D = f.NewButton();\n'
)


def build_source(text: str, file_name: str = "form.js") -> BuildResult:
	return build_model(parse_script(text, file_name).tree)


@pytest.fixture
def build() -> Callable[..., BuildResult]:
	return build_source
