"""
Observability Package — Tracing

Provides:
  traced — decorator for instrumenting async functions with timing + errors

Usage::

    from docflow.observability import traced

    @traced("process_document")
    async def _process(...):
        ...
"""

from docflow.observability.tracing import traced

__all__ = ["traced"]
