"""
Correlation and evaluation trace headers.

The gateway forwards a correlation id with every call and, during evaluation
runs, a run id and a trace id. All three are echoed back on the response so the
caller can join its logs with ours.
"""

import uuid
from dataclasses import dataclass
from typing import Mapping, MutableMapping, Optional

CORRELATION_ID_HEADER = "X-Correlation-ID"
EVAL_RUN_HEADER = "X-Flaim-Eval-Run"
EVAL_TRACE_HEADER = "X-Flaim-Eval-Trace"


@dataclass(frozen=True)
class TraceContext:
    correlation_id: str
    eval_run_id: Optional[str] = None
    eval_trace_id: Optional[str] = None


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    if value is None:
        return None
    value = value.strip()
    return value or None


def get_correlation_id(headers: Mapping[str, str]) -> str:
    """Incoming correlation id, or a fresh uuid4 when the caller sent none."""
    return _header(headers, CORRELATION_ID_HEADER) or str(uuid.uuid4())


def get_trace_context(headers: Mapping[str, str]) -> TraceContext:
    return TraceContext(
        correlation_id=get_correlation_id(headers),
        eval_run_id=_header(headers, EVAL_RUN_HEADER),
        eval_trace_id=_header(headers, EVAL_TRACE_HEADER),
    )


def apply_trace_headers(headers: MutableMapping[str, str], trace: TraceContext) -> None:
    headers[CORRELATION_ID_HEADER] = trace.correlation_id
    if trace.eval_run_id:
        headers[EVAL_RUN_HEADER] = trace.eval_run_id
    if trace.eval_trace_id:
        headers[EVAL_TRACE_HEADER] = trace.eval_trace_id
