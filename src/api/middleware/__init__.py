# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API middleware components.

This package provides middleware for request processing:
- GatewayIdentityMiddleware: Caller identity from gateway headers and
  request id logging context.

Exports:
    GatewayIdentityMiddleware: Gateway identity middleware.
    CurrentCaller: Caller identity stored on request.state.
"""

from src.api.middleware.gateway import CurrentCaller, GatewayIdentityMiddleware

__all__ = [
    "CurrentCaller",
    "GatewayIdentityMiddleware",
]
