"""
Shared testing infrastructure for the contractwire test suite.

Fake transports and sockets stand in for the network.
"""

from .mock_factory import FakeOpener, FakeSocket, FakeTransport

__all__ = [
    "FakeTransport",
    "FakeSocket",
    "FakeOpener",
]
