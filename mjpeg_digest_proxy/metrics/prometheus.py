"""Prometheus collectors for the proxy.

Kept in a standalone registry and served on their own listener so the proxy
itself exposes nothing but its stream route.
"""
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

registry = CollectorRegistry()

PROXY_REQUESTS = Counter("mdap_requests_total", "Client requests by final outcome", ["outcome"], registry=registry)
ACTIVE_STREAMS = Gauge("mdap_active_streams", "Trace scopes currently open", registry=registry)
RELAYED_BYTES = Counter("mdap_relayed_bytes_total", "Body bytes forwarded to clients", registry=registry)
UPSTREAM_FETCHES = Counter("mdap_upstream_fetches_total", "Upstream fetches by result", ["result"], registry=registry)
UPSTREAM_LATENCY = Histogram(
    "mdap_upstream_latency_seconds", "Time until upstream response headers arrive", registry=registry
)


def start_metrics_server(port: int, addr: str = "127.0.0.1") -> None:
    """Serve the registry on ``addr:port`` from a daemon thread."""
    start_http_server(port, addr=addr, registry=registry)
