import logging

import httpx

from ..supervisor.runtime_config import RuntimeConfig

_LOGGER = logging.getLogger(__name__)

HEALTH_PATH = "/health"


def health_url(config: RuntimeConfig, host: str = "localhost") -> str:
    return f"{config.scheme}://{host}:{config.active_port}{HEALTH_PATH}"


def probe_health(config: RuntimeConfig, timeout: float = 5.0, transport: httpx.BaseTransport | None = None) -> bool:
    """Single readiness probe against whichever listener is active.

    No response, a non-2xx status and a payload without ``status: true`` are
    all reported the same way: not ready.
    """
    url = health_url(config)
    # the listener uses the image's self-signed certificate
    try:
        with httpx.Client(timeout=timeout, verify=False, transport=transport) as client:
            resp = client.get(url)
    except httpx.HTTPError as e:
        _LOGGER.info("health probe %s failed: %s", url, e)
        return False
    if not resp.is_success:
        _LOGGER.info("health probe %s returned HTTP %s", url, resp.status_code)
        return False
    try:
        payload = resp.json()
    except ValueError:
        _LOGGER.info("health probe %s returned a non-JSON body", url)
        return False
    ready = isinstance(payload, dict) and payload.get("status") is True
    if not ready:
        _LOGGER.info("health probe %s reported not ready: %r", url, payload)
    return ready
