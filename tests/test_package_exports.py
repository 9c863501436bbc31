"""Tests for top-level package lazy exports."""

from __future__ import annotations

import unittest

import agentic_chat


class PackageExportTests(unittest.TestCase):
    """Ensure __getattr__ and exported symbols behave as expected."""

    def test_every_exported_symbol_resolves(self) -> None:
        for name in agentic_chat.__all__:
            self.assertIsNotNone(getattr(agentic_chat, name), name)

    def test_exports_point_at_defining_modules(self) -> None:
        from agentic_chat.session import SessionController

        self.assertIs(agentic_chat.SessionController, SessionController)
        self.assertTrue(callable(agentic_chat.load_config))

    def test_unknown_symbol_raises_attribute_error(self) -> None:
        with self.assertRaises(AttributeError):
            getattr(agentic_chat, "THIS_DOES_NOT_EXIST")


if __name__ == "__main__":
    unittest.main()
