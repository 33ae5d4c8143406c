"""Prometheus metrics definitions.

Exposed via the /metrics endpoint of the API server.
"""

from __future__ import annotations

from prometheus_client import Counter, generate_latest

# --- Permission metrics ---

permission_checks_total = Counter(
    "erp_permission_checks_total",
    "Capability checks evaluated by route guards",
    ["result"],  # allowed, denied
)

permission_resolutions_total = Counter(
    "erp_permission_resolutions_total",
    "Effective permission resolutions",
    ["source"],  # role, custom
)

authorization_denied_total = Counter(
    "erp_authorization_denied_total",
    "Settings mutations rejected for insufficient role",
    ["operation"],
)

# --- Auth metrics ---

jwt_logouts_total = Counter(
    "erp_jwt_logouts_total",
    "Total JWT logouts (tokens blacklisted)",
)

login_failures_total = Counter(
    "erp_login_failures_total",
    "Rejected login attempts",
)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return bytes(generate_latest())
