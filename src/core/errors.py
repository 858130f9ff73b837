"""Errors raised across the core/adapter boundary."""

from __future__ import annotations


class TransportFailure(RuntimeError):
    """A post, search, or rebroadcast call failed at the transport."""


class RequestTimeout(RuntimeError):
    """No reply arrived for a request within its timeout."""
