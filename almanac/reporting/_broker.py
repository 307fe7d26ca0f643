"""Broker setup for the Dramatiq report actors.

Actors are declared against whatever broker is installed when
``almanac.reporting.actor`` is imported. Outside tests a real broker must
already be configured; ``ALMANAC_ALLOW_STUB_BROKER`` opts local runs into an
in-memory ``StubBroker``.
"""

from __future__ import annotations

import os
import sys
import threading

import dramatiq
from dramatiq.brokers.stub import StubBroker

_BROKER_LOCK = threading.Lock()
_TRUTHY = frozenset({"1", "true", "yes"})
_broker_configured = False


def _is_running_tests() -> bool:
    """Return whether the process is running under pytest."""
    return "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ


def stub_broker_allowed() -> bool:
    """Return whether an in-memory ``StubBroker`` may be installed."""
    allow_stub = os.environ.get("ALMANAC_ALLOW_STUB_BROKER", "")
    return allow_stub.strip().lower() in _TRUTHY or _is_running_tests()


def ensure_broker_configured() -> dramatiq.Broker:
    """Return the active broker, installing a ``StubBroker`` when allowed.

    Idempotent and safe to call from several worker threads.

    Raises
    ------
    RuntimeError
        If no broker is configured and a stub broker is not allowed.

    """
    global _broker_configured

    with _BROKER_LOCK:
        if _broker_configured:
            return dramatiq.get_broker()

        try:
            current_broker = dramatiq.get_broker()
        except (ImportError, LookupError):
            # ImportError: the default RabbitMQ client is not installed.
            current_broker = None

        if current_broker is None:
            if not stub_broker_allowed():
                message = (
                    "No Dramatiq broker configured. Set ALMANAC_ALLOW_STUB_BROKER=1 "
                    "for local runs or configure a real broker."
                )
                raise RuntimeError(message)
            current_broker = StubBroker()
            dramatiq.set_broker(current_broker)

        _broker_configured = True
        return current_broker


__all__ = ["ensure_broker_configured", "stub_broker_allowed"]
