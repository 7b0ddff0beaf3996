import logging
import os
from typing import Mapping

from pydantic import ValidationError

from ..config.config import Layout
from ..errors import BootstrapFatal
from ..models import read_manifest
from .launcher import Exec, LaunchPlan, ListenerMode, build_launch_env, launch, plan_launch
from .runtime_config import RuntimeConfig, resolve_runtime_config

_LOGGER = logging.getLogger(__name__)


def run_supervisor(
	environ: Mapping[str, str] | None = None,
	layout: Layout | None = None,
	python: str | None = None,
	execvpe: Exec | None = None,
) -> LaunchPlan:
	"""Resolve one environment snapshot and hand the process to the app.

	Performs no installation, user creation or certificate generation.
	"""
	env = dict(os.environ if environ is None else environ)
	layout = layout or Layout.from_env(env)
	config = resolve_runtime_config(env, layout)
	plan = plan_launch(config, python=python)
	try:
		manifest = read_manifest(layout.manifest_path)
	except (OSError, ValidationError) as e:
		raise BootstrapFatal(f"build manifest at {layout.manifest_path} is unreadable: {e}") from e
	if manifest is None:
		_LOGGER.warning("no build manifest at %s; WEBUI_BUILD_VERSION is taken from the environment", layout.manifest_path)
	_LOGGER.info("running as uid=%s gid=%s", os.getuid(), os.getgid())
	launch(plan, build_launch_env(env, layout, manifest), execvpe=execvpe)
	return plan


__all__ = [
	"LaunchPlan",
	"ListenerMode",
	"RuntimeConfig",
	"build_launch_env",
	"plan_launch",
	"resolve_runtime_config",
	"run_supervisor",
]
