"""Build-time image assembly and run-time listener supervision."""

__version__ = "0.1.0"
