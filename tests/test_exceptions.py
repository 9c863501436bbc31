"""Tests for domain exception hierarchy."""

from __future__ import annotations

import unittest

from agentic_chat.exceptions import (
    AgenticChatError,
    BackendConnectionError,
    BackendError,
    BackendTimeoutError,
    ChannelError,
    ConfigValidationError,
    MetadataFormatError,
    PersistenceError,
    SnapshotValidationError,
)


class ExceptionHierarchyTests(unittest.TestCase):
    """Validate exception inheritance contract."""

    def test_exception_hierarchy(self) -> None:
        for error_type in (
            BackendConnectionError,
            BackendError,
            ChannelError,
            ConfigValidationError,
            MetadataFormatError,
            PersistenceError,
            SnapshotValidationError,
        ):
            self.assertTrue(issubclass(error_type, AgenticChatError))
        self.assertTrue(issubclass(BackendTimeoutError, BackendConnectionError))
        self.assertTrue(issubclass(AgenticChatError, RuntimeError))

    def test_backend_error_keeps_status(self) -> None:
        error = BackendError("Backend Error: 502 - bad gateway", status_code=502)
        self.assertEqual(error.status_code, 502)
        self.assertEqual(str(error), "Backend Error: 502 - bad gateway")


if __name__ == "__main__":
    unittest.main()
