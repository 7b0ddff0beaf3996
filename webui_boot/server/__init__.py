from .health import health_url, probe_health
from .http import create_app

__all__ = ["create_app", "health_url", "probe_health"]
