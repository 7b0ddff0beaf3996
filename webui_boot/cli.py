import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from .config import BuildParameters, Layout, configure_logging
from .errors import BootError, BuildFatal
from .supervisor import plan_launch, resolve_runtime_config, run_supervisor

_LOGGER = configure_logging()


def _layout(args: argparse.Namespace) -> Layout:
	layout = Layout.from_env()
	if getattr(args, "app_root", None):
		layout = Layout(app_root=Path(args.app_root), home_dir=layout.home_dir)
	if getattr(args, "home", None):
		layout = Layout(app_root=layout.app_root, home_dir=Path(args.home))
	return layout


def cmd_assemble(args: argparse.Namespace) -> None:
	from .assembler.pipeline import describe
	from .bootstrap import build_assembler

	try:
		params = BuildParameters.from_env()
	except ValueError as e:
		raise BuildFatal("build-parameters", str(e)) from e
	assembler = build_assembler(params, _layout(args), python=args.python)
	manifest = assembler.assemble()
	print(json.dumps(describe(manifest)))


def cmd_start(args: argparse.Namespace) -> None:
	run_supervisor(layout=_layout(args), python=args.python)


def cmd_healthcheck(args: argparse.Namespace) -> None:
	from .server.health import probe_health

	config = resolve_runtime_config(layout=_layout(args))
	if not probe_health(config, timeout=args.timeout):
		sys.exit(1)


def cmd_show_config(args: argparse.Namespace) -> None:
	config = resolve_runtime_config(layout=_layout(args))
	out = {k: str(v) if isinstance(v, Path) else v for k, v in asdict(config).items()}
	out["active_port"] = config.active_port
	plan = plan_launch(config, python=args.python)
	out["mode"] = plan.mode.value
	out["argv"] = list(plan.argv)
	print(json.dumps(out, indent=2))


def cmd_serve(args: argparse.Namespace) -> None:
	from .server.http import create_app

	config = resolve_runtime_config(layout=_layout(args))
	plan = plan_launch(config)
	print(plan.banner)
	ssl_kwargs = {}
	if config.use_ssl:
		ssl_kwargs = {"ssl_keyfile": str(config.ssl_key_path), "ssl_certfile": str(config.ssl_cert_path)}
	uvicorn.run(create_app(), host=plan.host, port=plan.port, log_level="info", **ssl_kwargs)


def build_arg_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(description="Container image assembly and start-up supervisor")
	parser.add_argument("--app-root", help="Application root (default: $APP_ROOT or /app)")
	parser.add_argument("--home", help="Runtime home directory (default: $HOME or /root)")
	sub = parser.add_subparsers(dest="command", required=True)

	p_asm = sub.add_parser("assemble", help="Provision the image from build arguments (USE_CUDA, UID, ...)")
	p_asm.add_argument("--python", help="Interpreter to install packages into (default: current)")
	p_asm.set_defaults(func=cmd_assemble)

	p_start = sub.add_parser("start", help="Select plain or SSL listener and exec the application")
	p_start.add_argument("--python", help="Interpreter used to run uvicorn (default: current)")
	p_start.set_defaults(func=cmd_start)

	p_hc = sub.add_parser("healthcheck", help="Probe /health on the active listener; exit 1 when not ready")
	p_hc.add_argument("--timeout", type=float, default=5.0, help="Request timeout in seconds")
	p_hc.set_defaults(func=cmd_healthcheck)

	p_cfg = sub.add_parser("show-config", help="Print the resolved runtime configuration and launch command")
	p_cfg.add_argument("--python", help="Interpreter shown in the launch command (default: current)")
	p_cfg.set_defaults(func=cmd_show_config)

	p_srv = sub.add_parser("serve", help="Run the reference health app in-process (development)")
	p_srv.set_defaults(func=cmd_serve)
	return parser


def main(argv: list[str] | None = None) -> None:
	load_dotenv()
	parser = build_arg_parser()
	args = parser.parse_args(argv)
	try:
		args.func(args)
	except BootError as e:
		_LOGGER.error("%s", e)
		print(f"[webui-boot] FATAL: {e}", file=sys.stderr)
		sys.exit(1)


if __name__ == "__main__":
	main()
