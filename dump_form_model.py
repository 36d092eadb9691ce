from __future__ import annotations

"""
Dump the semantic model and change log of a form script.

Outputs (with --out):
  - model.json   (entities of the new source)
  - forms.json   (change log against --old, or everything created)

Run:
  python dump_form_model.py form.js [--old previous.js] [--form f] [--out dumps/]
"""

import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

from form_constants import split_name
from form_differ import make_changes
from form_sync import FormSyncEngine


def main(argv: Optional[List[str]] = None) -> int:
	parser = argparse.ArgumentParser(description="Dump the model and change log of a form script.")
	parser.add_argument("source", type=Path)
	parser.add_argument("--old", type=Path, default=None, help="previous version to diff against")
	parser.add_argument("--form", default=None, help="print only the changes of this form")
	parser.add_argument("--out", type=Path, default=None, help="directory for model.json / forms.json")
	parser.add_argument("-v", "--verbose", action="store_true")
	args = parser.parse_args(argv)

	logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

	engine = FormSyncEngine(sink=lambda line: print("diagnostic:", line))
	old = engine.parse(args.old.read_text(encoding="utf-8"), str(args.old)) if args.old else None
	new = engine.parse(args.source.read_text(encoding="utf-8"), str(args.source))
	forms = make_changes(old.model if old else None, new.model, engine.resolver)

	print("=== FORMS ===")
	for name in forms.get_form_names():
		print(name)

	print("\n=== CHANGES ===")
	if args.form:
		changes = forms.get_form_update(split_name(args.form)).as_message()
	else:
		changes = forms.as_message()
	print(json.dumps(changes, indent=2))

	if args.out:
		args.out.mkdir(parents=True, exist_ok=True)
		(args.out / "model.json").write_text(json.dumps(new.model.to_dict(), indent=2), encoding="utf-8")
		(args.out / "forms.json").write_text(json.dumps(forms.as_message(), indent=2), encoding="utf-8")
		print("\nWrote:", args.out / "model.json", args.out / "forms.json")
	return 1 if new.has_errors else 0


if __name__ == "__main__":
	raise SystemExit(main())
