"""Tests for health check endpoints."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from backup_bucket_operator.health import (
    create_combined_wsgi_app,
    mark_not_ready,
    mark_ready,
    start_metrics_server,
)


def _environ(path: str) -> dict:
    return {
        "REQUEST_METHOD": "GET",
        "PATH_INFO": path,
        "SCRIPT_NAME": "",
        "SERVER_NAME": "localhost",
        "SERVER_PORT": "8080",
        "wsgi.url_scheme": "http",
    }


@pytest.fixture(autouse=True)
def reset_readiness():
    mark_not_ready()
    yield
    mark_not_ready()


class TestCombinedWsgiApp:
    """Test cases for combined WSGI application."""

    def test_combined_app_healthz(self):
        """Test combined app handles /healthz."""
        app = create_combined_wsgi_app()
        start_response = MagicMock()

        result = app(_environ("/healthz"), start_response)

        assert b'"status":"ok"' in b"".join(result)
        assert "200" in start_response.call_args[0][0]

    def test_healthz_content_type_is_json(self):
        """Test that content type is application/json."""
        app = create_combined_wsgi_app()
        start_response = MagicMock()

        app(_environ("/healthz"), start_response)

        headers = start_response.call_args[0][1]
        content_type_header = [h for h in headers if h[0].lower() == "content-type"]
        assert "application/json" in content_type_header[0][1]

    def test_readyz_before_startup(self):
        """Test /readyz reports 503 until the operator is ready."""
        app = create_combined_wsgi_app()
        start_response = MagicMock()

        result = app(_environ("/readyz"), start_response)

        assert b'"status":"starting"' in b"".join(result)
        assert "503" in start_response.call_args[0][0]

    def test_readyz_after_startup(self):
        """Test /readyz reports 200 once marked ready."""
        app = create_combined_wsgi_app()
        start_response = MagicMock()
        mark_ready()

        result = app(_environ("/readyz"), start_response)

        assert b'"status":"ready"' in b"".join(result)
        assert "200" in start_response.call_args[0][0]

    @patch("backup_bucket_operator.health.make_wsgi_app")
    def test_combined_app_delegates_to_metrics(self, mock_make_wsgi):
        """Test combined app delegates /metrics to prometheus."""
        mock_metrics_app = MagicMock(return_value=[b"metrics data"])
        mock_make_wsgi.return_value = mock_metrics_app
        app = create_combined_wsgi_app()

        result = app(_environ("/metrics"), MagicMock())

        assert result == [b"metrics data"]
        assert mock_metrics_app.called

    def test_metrics_exposed(self):
        """Test that operator metrics are served."""
        app = create_combined_wsgi_app()

        body = b"".join(app(_environ("/metrics"), MagicMock()))

        assert b"backup_bucket_operator_reconcile_total" in body


class TestMetricsServer:
    """Tests for the metrics and health server."""

    @patch("backup_bucket_operator.health.make_server")
    @patch("backup_bucket_operator.health.threading.Thread")
    def test_start_metrics_server(self, mock_thread, mock_make_server):
        """Test that the server is created and started in a daemon thread."""
        mock_server = MagicMock()
        mock_make_server.return_value = mock_server
        mock_thread_instance = MagicMock()
        mock_thread.return_value = mock_thread_instance

        server = start_metrics_server(8080)

        assert server is mock_server
        assert mock_make_server.call_args[0][1] == 8080
        assert mock_thread.call_args[1].get("daemon") is True
        assert mock_thread.call_args[1].get("target") == mock_server.serve_forever
        mock_thread_instance.start.assert_called_once()
