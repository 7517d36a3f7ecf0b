"""
Grafana OTLP Metrics Exporter
==============================

Pushes gauge metrics to Grafana Cloud via the OTLP HTTP endpoint.

Callers hand over plain name -> value gauges; this module only knows the
OTLP JSON shape and the Grafana authentication scheme.
"""

import base64
import time
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

import httpx

from grievance_sla.config import settings
from grievance_sla.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Gauge:
    """One gauge data point."""
    name: str
    value: float
    unit: str = "1"
    description: str = ""


class GrafanaOTLPExporter:
    """
    Export metrics to Grafana Cloud via OTLP HTTP endpoint.

    Disabled (every export is a no-op returning False) unless host, API key
    and instance ID are all configured.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        api_key: Optional[str] = None,
        instance_id: Optional[str] = None,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize Grafana OTLP exporter.

        Args:
            host: Grafana OTLP gateway URL (e.g., https://otlp-gateway-prod-ap-south-1.grafana.net)
            api_key: Grafana API key
            instance_id: Instance ID for authentication
            timeout_seconds: HTTP timeout per export
            transport: Optional httpx transport (tests use a mock transport)
        """
        self._host = host or settings.grafana_host
        self._api_key = api_key or settings.grafana_api_key
        self._instance_id = instance_id or settings.grafana_instance_id
        self._timeout = timeout_seconds
        self._transport = transport
        self._enabled = bool(self._host and self._api_key and self._instance_id)

        if self._enabled:
            auth_pair = f"{self._instance_id}:{self._api_key}"
            self._auth_encoded = base64.b64encode(auth_pair.encode()).decode()
            # Don't double-append the path if host already includes it
            if "/otlp/v1/metrics" not in self._host:
                self._url = f"{self._host.rstrip('/')}/otlp/v1/metrics"
            else:
                self._url = self._host
            logger.info(
                "Grafana OTLP exporter initialized",
                extra={"host": self._host, "instance_id": self._instance_id}
            )
        else:
            logger.info(
                "Grafana OTLP exporter not configured - metrics will not be exported",
                extra={
                    "host_configured": bool(self._host),
                    "api_key_configured": bool(self._api_key),
                    "instance_id_configured": bool(self._instance_id)
                }
            )

    def is_enabled(self) -> bool:
        """Check if exporter is properly configured."""
        return self._enabled

    def build_payload(
        self,
        gauges: Iterable[Gauge],
        attributes: Optional[Dict[str, str]] = None
    ) -> dict:
        """Build the OTLP ``resourceMetrics`` JSON body."""
        timestamp_ns = int(time.time() * 1_000_000_000)

        metric_attributes = [
            {"key": "service", "value": {"stringValue": settings.app_name}},
        ]
        for key, value in (attributes or {}).items():
            metric_attributes.append({"key": key, "value": {"stringValue": str(value)}})

        metrics = []
        for gauge in gauges:
            data_point = {"timeUnixNano": timestamp_ns, "attributes": metric_attributes}
            if isinstance(gauge.value, int) and not isinstance(gauge.value, bool):
                data_point["asInt"] = gauge.value
            else:
                data_point["asDouble"] = float(gauge.value)

            metrics.append({
                "name": gauge.name,
                "unit": gauge.unit,
                "description": gauge.description,
                "gauge": {"dataPoints": [data_point]}
            })

        return {
            "resourceMetrics": [
                {
                    "resource": {
                        "attributes": [
                            {"key": "service.name", "value": {"stringValue": settings.app_name}},
                            {"key": "service.version", "value": {"stringValue": settings.app_version}},
                            {"key": "deployment.environment", "value": {"stringValue": settings.environment}},
                        ]
                    },
                    "scopeMetrics": [{"metrics": metrics}]
                }
            ]
        }

    async def export_gauges(
        self,
        gauges: Iterable[Gauge],
        attributes: Optional[Dict[str, str]] = None
    ) -> bool:
        """
        Push gauges to Grafana.

        Export failures are logged and reported through the return value;
        they never propagate to the caller.

        Returns:
            True if export succeeded, False otherwise
        """
        if not self._enabled:
            logger.debug("Grafana exporter not enabled - skipping metrics export")
            return False

        payload = self.build_payload(gauges, attributes)
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {self._auth_encoded}",
            "X-Grafana-Org-Id": str(self._instance_id)
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.error(
                "Error exporting metrics to Grafana",
                extra={"error": str(e), "url": self._url}
            )
            return False

        if response.status_code in (200, 202):
            logger.debug(
                "Metrics exported to Grafana",
                extra={
                    "metrics_count": len(payload["resourceMetrics"][0]["scopeMetrics"][0]["metrics"]),
                    "status_code": response.status_code
                }
            )
            return True

        logger.warning(
            "Failed to export metrics to Grafana",
            extra={
                "status_code": response.status_code,
                "response": response.text[:500],
                "url": self._url
            }
        )
        return False


def init_grafana_exporter(
    host: Optional[str],
    api_key: Optional[str],
    instance_id: Optional[str]
) -> GrafanaOTLPExporter:
    """Initialize Grafana exporter with credentials."""
    return GrafanaOTLPExporter(
        host=host,
        api_key=api_key,
        instance_id=instance_id
    )
