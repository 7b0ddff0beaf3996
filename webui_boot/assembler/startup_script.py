import os
import shlex
import sys
from pathlib import Path

SCRIPT_TEMPLATE = """#!/bin/sh
# Generated at image build time. Listener selection (plain vs. SSL) happens in
# the supervisor on every start; nothing here installs or generates anything.
exec {python} -m webui_boot.cli start "$@"
"""


def render_startup_script(python: str | None = None) -> str:
    return SCRIPT_TEMPLATE.format(python=shlex.quote(python or sys.executable))


def emit_startup_script(path: Path, python: str | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(render_startup_script(python), encoding="utf-8")
    os.chmod(tmp, 0o755)
    os.replace(tmp, path)
    return path
