"""
revision_engines.tracer -- REVISION_ENGINE_TRACE records for pure engines.

Responsibility:
    ``@traced_engine`` logs one INFO record per successful engine call with
    the engine's name and version, a short fingerprint of selected keyword
    arguments, and the elapsed time.  Two calls with equal inputs carry
    equal fingerprints, which makes recomputations easy to spot in logs.

Architecture position:
    Engines.  Emits through plain ``logging`` under the ``revision_kernel``
    namespace; engines never import the kernel's logging configuration.

Failure modes:
    - Engine exceptions propagate unchanged and no trace is written.
    - Fingerprint fields absent from the call are hashed as null.
"""

from __future__ import annotations

import functools
import hashlib
import json
import logging
import time
from collections.abc import Callable
from typing import Any

TRACE_MESSAGE = "REVISION_ENGINE_TRACE"

_logger = logging.getLogger("revision_kernel.engines.tracer")


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """First 16 hex chars of SHA-256 over the named kwargs as canonical JSON."""
    selected = {name: kwargs.get(name) for name in fingerprint_fields}
    canonical = json.dumps(selected, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Wrap a pure engine so every successful call is traced.

    Args:
        engine_name: Identifier written as ``engine_name``.
        engine_version: Written as ``engine_version``; bump when the
            engine's output for the same input changes.
        fingerprint_fields: Keyword arguments hashed into
            ``input_fingerprint``.  Engines are called with keywords.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            result = func(*args, **kwargs)
            elapsed_ms = (time.perf_counter() - started) * 1000

            _logger.info(
                TRACE_MESSAGE,
                extra={
                    "trace_type": TRACE_MESSAGE,
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": (
                        compute_input_fingerprint(fingerprint_fields, kwargs)
                        if fingerprint_fields
                        else ""
                    ),
                    "duration_ms": round(elapsed_ms, 3),
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
