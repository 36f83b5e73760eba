"""Timing and outcome records for pipeline stages."""

from __future__ import annotations

import contextlib
import time
from dataclasses import dataclass, field
from typing import Dict, Iterator, Mapping, Optional

from . import logging_manager as log_mgr

logger = log_mgr.get_logger().getChild("observability")


@dataclass
class OperationRecord:
    """Mutable summary of one pipeline stage.

    Callers may add ``attributes`` while the stage runs; they are included in
    the completion event.
    """

    name: str
    attributes: Dict[str, object] = field(default_factory=dict)
    status: str = "running"
    duration_ms: Optional[float] = None

    def annotate(self, **values: object) -> None:
        self.attributes.update(values)


def record_metric(
    name: str,
    value: float,
    attributes: Optional[Mapping[str, object]] = None,
) -> None:
    logger.debug(
        "Metric %s=%s",
        name,
        value,
        extra={
            "event": "metric",
            "metric": name,
            "value": value,
            "attributes": dict(attributes or {}),
            "console_suppress": True,
        },
    )


@contextlib.contextmanager
def pipeline_operation(
    name: str,
    *,
    attributes: Optional[Mapping[str, object]] = None,
) -> Iterator[OperationRecord]:
    """Run a block as the ``name`` stage and log its duration and status."""

    record = OperationRecord(name=name, attributes=dict(attributes or {}))
    log_mgr.bind_run(
        correlation_id=record.attributes.get("correlation_id"),
        run_id=record.attributes.get("run_id"),
    )

    with log_mgr.log_context(stage=name):
        logger.debug(
            "%s started",
            name,
            extra={"event": f"{name}.start", "attributes": dict(record.attributes), "console_suppress": True},
        )
        start = time.perf_counter()
        try:
            yield record
        except BaseException:
            record.status = "error"
            raise
        else:
            record.status = "ok"
        finally:
            record.duration_ms = round((time.perf_counter() - start) * 1000.0, 2)
            record_metric(f"{name}.duration_ms", record.duration_ms, record.attributes)
            logger.info(
                "%s finished with status %s",
                name,
                record.status,
                extra={
                    "event": f"{name}.complete",
                    "duration_ms": record.duration_ms,
                    "status": record.status,
                    "attributes": dict(record.attributes),
                    "console_suppress": True,
                },
            )


__all__ = ["OperationRecord", "pipeline_operation", "record_metric"]
