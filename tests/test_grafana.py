"""
Tests for the Grafana OTLP exporter and the per-cycle metrics adapter.
"""

import base64
import json

import httpx

from grievance_sla.shared.infrastructure.grafana import Gauge, GrafanaOTLPExporter, init_grafana_exporter
from grievance_sla.sla.domain import CycleReport
from grievance_sla.sla.infrastructure import GrafanaCycleMetricsExporter

from conftest import ist, MON


def make_exporter(handler) -> GrafanaOTLPExporter:
    return GrafanaOTLPExporter(
        host="https://otlp.example.net",
        api_key="secret",
        instance_id="12345",
        transport=httpx.MockTransport(handler)
    )


class TestGrafanaOTLPExporter:

    async def test_disabled_without_credentials(self):
        exporter = GrafanaOTLPExporter()
        assert not exporter.is_enabled()
        assert await exporter.export_gauges([Gauge("x", 1)]) is False

    async def test_export_success(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200)

        exporter = make_exporter(handler)
        assert await exporter.export_gauges([Gauge("sla_cycle_applied", 3)], {"cancelled": "false"})

        request = requests[0]
        assert str(request.url) == "https://otlp.example.net/otlp/v1/metrics"
        expected_auth = base64.b64encode(b"12345:secret").decode()
        assert request.headers["Authorization"] == f"Basic {expected_auth}"

        body = json.loads(request.content)
        metric = body["resourceMetrics"][0]["scopeMetrics"][0]["metrics"][0]
        assert metric["name"] == "sla_cycle_applied"
        point = metric["gauge"]["dataPoints"][0]
        assert point["asInt"] == 3
        assert {"key": "cancelled", "value": {"stringValue": "false"}} in point["attributes"]

    async def test_rejected_export(self):
        exporter = make_exporter(lambda request: httpx.Response(401, text="unauthorized"))
        assert await exporter.export_gauges([Gauge("x", 1.5)]) is False

    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert await make_exporter(handler).export_gauges([Gauge("x", 1)]) is False

    def test_float_gauges_are_doubles(self):
        exporter = make_exporter(lambda request: httpx.Response(200))
        payload = exporter.build_payload([Gauge("ratio", 0.25)])
        point = payload["resourceMetrics"][0]["scopeMetrics"][0]["metrics"][0]["gauge"]["dataPoints"][0]
        assert point["asDouble"] == 0.25
        assert "asInt" not in point

    def test_init_builds_fresh_exporter(self):
        first = init_grafana_exporter("https://otlp.example.net", "secret", "12345")
        second = init_grafana_exporter(None, None, None)

        assert first.is_enabled()
        assert second is not first


class TestGrafanaCycleMetricsExporter:

    def test_to_gauges(self):
        report = CycleReport(started_at=ist(*MON, 10), issues_evaluated=10, mutations=3, applied=2, failed=1)
        gauges = {g.name: g.value for g in GrafanaCycleMetricsExporter.to_gauges(report)}
        assert gauges["sla_cycle_issues_evaluated"] == 10
        assert gauges["sla_cycle_applied"] == 2
        assert gauges["sla_cycle_failed"] == 1

    async def test_export_cycle_metrics(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(202)

        adapter = GrafanaCycleMetricsExporter(make_exporter(handler))
        report = CycleReport(started_at=ist(*MON, 10), cancelled=True)

        assert await adapter.export_cycle_metrics(report) is True
        point = bodies[0]["resourceMetrics"][0]["scopeMetrics"][0]["metrics"][0]["gauge"]["dataPoints"][0]
        assert {"key": "cancelled", "value": {"stringValue": "true"}} in point["attributes"]
