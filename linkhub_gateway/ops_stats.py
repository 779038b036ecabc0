"""Operational statistics for the gateway.

Lightweight in-memory counters exposed through ``/v1/stats``.

Notes
-----
- Counters reset on process restart.
- Per-process only; aggregate across instances with Prometheus instead.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class _Counters:
    # RPC
    rpc_total: int = 0
    rpc_by_method: Dict[str, int] = field(default_factory=dict)
    rpc_errors_by_code: Dict[str, int] = field(default_factory=dict)

    # Tools
    tool_calls_total: int = 0
    tool_calls_by_tool: Dict[str, int] = field(default_factory=dict)
    tool_calls_by_outcome: Dict[str, int] = field(default_factory=dict)  # ok/tool_error

    # Credentials
    auth_failures_total: int = 0
    auth_failures_by_reason: Dict[str, int] = field(default_factory=dict)
    rate_limited_total: int = 0

    # Background work
    inquiries_total: int = 0
    visits_recorded_total: int = 0
    visit_errors_total: int = 0


class OpsStats:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._start_monotonic = time.monotonic()
        self._c = _Counters()

    def _inc_map(self, m: Dict[str, int], key: str) -> None:
        m[key] = int(m.get(key, 0)) + 1

    def record_rpc(self, method: str, error_code: int | None = None) -> None:
        with self._lock:
            self._c.rpc_total += 1
            self._inc_map(self._c.rpc_by_method, method or "unknown")
            if error_code is not None:
                self._inc_map(self._c.rpc_errors_by_code, str(error_code))

    def record_tool_call(self, tool_name: str, outcome: str) -> None:
        with self._lock:
            self._c.tool_calls_total += 1
            self._inc_map(self._c.tool_calls_by_tool, tool_name or "unknown")
            self._inc_map(self._c.tool_calls_by_outcome, outcome or "unknown")

    def record_auth_failure(self, reason: str) -> None:
        with self._lock:
            self._c.auth_failures_total += 1
            self._inc_map(self._c.auth_failures_by_reason, reason or "unknown")

    def record_rate_limited(self) -> None:
        with self._lock:
            self._c.rate_limited_total += 1

    def record_inquiry(self) -> None:
        with self._lock:
            self._c.inquiries_total += 1

    def record_visit(self, ok: bool) -> None:
        with self._lock:
            if ok:
                self._c.visits_recorded_total += 1
            else:
                self._c.visit_errors_total += 1

    def snapshot(self, extra: Dict[str, Any] | None = None) -> Dict[str, Any]:
        with self._lock:
            c = self._c
            snap: Dict[str, Any] = {
                "uptime_seconds": int(time.monotonic() - self._start_monotonic),
                "rpc_total": c.rpc_total,
                "rpc_by_method": dict(c.rpc_by_method),
                "rpc_errors_by_code": dict(c.rpc_errors_by_code),
                "tool_calls_total": c.tool_calls_total,
                "tool_calls_by_tool": dict(c.tool_calls_by_tool),
                "tool_calls_by_outcome": dict(c.tool_calls_by_outcome),
                "auth_failures_total": c.auth_failures_total,
                "auth_failures_by_reason": dict(c.auth_failures_by_reason),
                "rate_limited_total": c.rate_limited_total,
                "inquiries_total": c.inquiries_total,
                "visits_recorded_total": c.visits_recorded_total,
                "visit_errors_total": c.visit_errors_total,
            }
        if extra:
            snap.update(extra)
        return snap


OPS_STATS = OpsStats()
