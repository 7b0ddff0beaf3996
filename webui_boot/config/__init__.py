from .config import BuildParameters, ComputeRuntime, Layout, read_env, read_flag, read_int
from .logging_config import configure_logging

__all__ = [
	"BuildParameters",
	"ComputeRuntime",
	"Layout",
	"configure_logging",
	"read_env",
	"read_flag",
	"read_int",
]
