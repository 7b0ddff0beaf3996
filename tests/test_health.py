import httpx
import pytest
from fastapi.testclient import TestClient

from webui_boot.server.health import health_url, probe_health
from webui_boot.server.http import create_app
from webui_boot.supervisor.runtime_config import resolve_runtime_config


def test_reference_app_reports_ready():
	client = TestClient(create_app(version="abc"))
	resp = client.get("/health")
	assert resp.status_code == 200
	assert resp.json() == {"status": True, "version": "abc"}


def test_health_url_follows_active_listener(layout):
	plain = resolve_runtime_config({"PORT": "9000"}, layout)
	assert health_url(plain) == "http://localhost:9000/health"
	ssl = resolve_runtime_config({"USE_SSL": "true", "PORT": "9000"}, layout)
	assert health_url(ssl) == "https://localhost:8443/health"


def _transport(handler):
	return httpx.MockTransport(handler)


def test_probe_ready(layout):
	config = resolve_runtime_config({}, layout)
	seen = []

	def handler(request):
		seen.append(str(request.url))
		return httpx.Response(200, json={"status": True})

	assert probe_health(config, transport=_transport(handler)) is True
	assert seen == ["http://localhost:8080/health"]


@pytest.mark.parametrize(
	"response",
	[
		httpx.Response(500, json={"status": True}),
		httpx.Response(503, json={"status": False}),
		httpx.Response(200, text="<html>ok</html>"),
		httpx.Response(200, json={"status": "ok"}),
		httpx.Response(200, json={"status": False}),
		httpx.Response(200, json=[True]),
		httpx.Response(200, json={}),
	],
)
def test_probe_not_ready_variants(layout, response):
	config = resolve_runtime_config({}, layout)
	assert probe_health(config, transport=_transport(lambda request: response)) is False


def test_probe_connection_error_is_not_ready(layout):
	config = resolve_runtime_config({}, layout)

	def handler(request):
		raise httpx.ConnectError("connection refused", request=request)

	assert probe_health(config, transport=_transport(handler)) is False


def test_app_reads_build_version_when_created(monkeypatch):
	from webui_boot.server import http

	assert not hasattr(http, "app")
	monkeypatch.setenv("WEBUI_BUILD_VERSION", "feedface")
	client = TestClient(create_app())
	assert client.get("/health").json() == {"status": True, "version": "feedface"}
