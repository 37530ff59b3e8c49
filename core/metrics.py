from __future__ import annotations

import bisect
import threading
from collections import defaultdict
from typing import Dict, Tuple

_lock = threading.Lock()
_buckets = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)

_requests: Dict[Tuple[str, str, int], int] = defaultdict(int)
_hist_count: Dict[Tuple[str, str], int] = defaultdict(int)
_hist_sum: Dict[Tuple[str, str], float] = defaultdict(float)
# per (handler, method): observations per bucket index; the last index is +Inf
_hist_slots: Dict[Tuple[str, str], list[int]] = {}

_auth: Dict[Tuple[str, str], int] = defaultdict(int)
_payroll: Dict[str, int] = defaultdict(int)


def observe_request(handler: str, method: str, status: int, duration_s: float) -> None:
    hkey = (handler, method.upper())
    with _lock:
        _requests[(handler, method.upper(), int(status))] += 1
        _hist_count[hkey] += 1
        _hist_sum[hkey] += float(duration_s)
        slots = _hist_slots.setdefault(hkey, [0] * (len(_buckets) + 1))
        slots[bisect.bisect_left(_buckets, duration_s)] += 1


def observe_auth(scheme: str, outcome: str) -> None:
    """Count principal resolutions by credential scheme and load outcome."""
    with _lock:
        _auth[(scheme, outcome)] += 1


def observe_payroll(event: str) -> None:
    with _lock:
        _payroll[event] += 1


def _esc(v: str) -> str:
    return v.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def export_prometheus() -> str:
    lines = [
        "# HELP office_request_total Total HTTP requests",
        "# TYPE office_request_total counter",
    ]
    with _lock:
        for (handler, method, status), val in sorted(_requests.items()):
            lines.append(
                f'office_request_total{{handler="{_esc(handler)}",method="{_esc(method)}",status="{int(status)}"}} {int(val)}'
            )

        lines.append("# HELP office_request_duration_seconds Request duration histogram")
        lines.append("# TYPE office_request_duration_seconds histogram")
        for (handler, method), slots in sorted(_hist_slots.items()):
            labels = f'handler="{_esc(handler)}",method="{_esc(method)}"'
            cumulative = 0
            for le, hits in zip(_buckets, slots):
                cumulative += hits
                lines.append(f'office_request_duration_seconds_bucket{{{labels},le="{le}"}} {cumulative}')
            lines.append(f'office_request_duration_seconds_bucket{{{labels},le="+Inf"}} {cumulative + slots[-1]}')
            lines.append(f"office_request_duration_seconds_sum{{{labels}}} {float(_hist_sum[(handler, method)])}")
            lines.append(f"office_request_duration_seconds_count{{{labels}}} {int(_hist_count[(handler, method)])}")

        lines.append("# HELP office_principal_resolutions_total Principal resolutions by scheme and outcome")
        lines.append("# TYPE office_principal_resolutions_total counter")
        for (scheme, outcome), val in sorted(_auth.items()):
            lines.append(
                f'office_principal_resolutions_total{{scheme="{_esc(scheme)}",outcome="{_esc(outcome)}"}} {int(val)}'
            )

        lines.append("# HELP office_payroll_events_total Payroll engine events")
        lines.append("# TYPE office_payroll_events_total counter")
        for event, val in sorted(_payroll.items()):
            lines.append(f'office_payroll_events_total{{event="{_esc(event)}"}} {int(val)}')
    return "\n".join(lines) + "\n"
