"""Exports for test fakes."""

from .diagnostics import Capture, RecordingDiagnostics
from .timing import FakeClock, RecordingSleeper
from .transport import FakeRefresher, FakeTransport

__all__ = [
    "Capture",
    "FakeClock",
    "FakeRefresher",
    "FakeTransport",
    "RecordingDiagnostics",
    "RecordingSleeper",
]
