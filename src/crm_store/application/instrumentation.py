"""Per-operation tracing, logging context and metrics."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator

from crm_store.domain.errors import InvalidInputError, NotFoundError
from crm_store.infrastructure.logging import operation_context
from crm_store.infrastructure.metrics import MetricsRegistry
from crm_store.infrastructure.tracing import trace_span


def _status_for(exc: BaseException | None) -> str:
    if exc is None:
        return "success"
    if isinstance(exc, NotFoundError):
        return "not_found"
    if isinstance(exc, InvalidInputError):
        return "invalid_input"
    return "error"


@contextmanager
def observed(
    metrics: MetricsRegistry | None,
    operation: str,
    **attributes: Any,
) -> Iterator[None]:
    """Wrap one record service call in a span, log context and metrics.

    The outcome is counted under ``crm_operations_total`` with a status of
    success, not_found, invalid_input or error. Exceptions propagate.
    """
    span_attributes = {f"crm.{key}": value for key, value in attributes.items()}
    start = time.perf_counter()
    error: BaseException | None = None

    with trace_span(f"crm.{operation}", span_attributes), operation_context(
        operation, **attributes
    ):
        try:
            yield
        except BaseException as e:
            error = e
            raise
        finally:
            if metrics is not None:
                metrics.record_operation(
                    operation, _status_for(error), time.perf_counter() - start
                )
