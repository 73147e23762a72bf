"""Exceptions raised by the admission gate."""

from __future__ import annotations


class GateError(Exception):
    pass


class GateConfigurationError(GateError, ValueError):
    """Quota settings that the gate cannot honor."""


class UndefinedRateError(GateConfigurationError):
    """Requests-per-second asked for a zero-length window."""


class GateClosedError(GateError, RuntimeError):
    pass


class AdmissionTimeoutError(GateError, TimeoutError):
    pass
