"""Test utilities for perch routers.

    from perch.testing import Recorder, TestClient, make_request
"""

from perch.testing.client import TestClient, TestResponse
from perch.testing.recorder import Recorder, make_request

__all__ = [
    "Recorder",
    "TestClient",
    "TestResponse",
    "make_request",
]
