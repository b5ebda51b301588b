"""Tests for domain exception hierarchy."""

from __future__ import annotations

import unittest

from fiesta_chat.exceptions import (
    AttachmentError,
    ConfigValidationError,
    EmptyPromptError,
    FiestaChatError,
    MissingCredentialError,
    ProviderError,
    TransportError,
    TurnCancelledError,
    TurnValidationError,
    UnknownModelError,
)


class ExceptionHierarchyTests(unittest.TestCase):
    """Validate exception inheritance contract."""

    def test_exception_hierarchy(self) -> None:
        for exc_type in (
            TransportError,
            ProviderError,
            TurnValidationError,
            TurnCancelledError,
            UnknownModelError,
            ConfigValidationError,
            AttachmentError,
        ):
            self.assertTrue(issubclass(exc_type, FiestaChatError))
        self.assertTrue(issubclass(MissingCredentialError, TurnValidationError))
        self.assertTrue(issubclass(EmptyPromptError, TurnValidationError))
        self.assertTrue(issubclass(FiestaChatError, RuntimeError))

    def test_transport_error_factories(self) -> None:
        status_error = TransportError.for_status(429)
        self.assertEqual(str(status_error), "HTTP error! status: 429")
        self.assertEqual(status_error.status, 429)
        self.assertFalse(status_error.network)

        network_error = TransportError.for_network("timed out")
        self.assertEqual(str(network_error), "Network error: timed out")
        self.assertIsNone(network_error.status)
        self.assertTrue(network_error.network)

    def test_missing_credential_lists_sorted_unique_providers(self) -> None:
        exc = MissingCredentialError(["openrouter", "google", "openrouter"])
        self.assertEqual(exc.providers, ["google", "openrouter"])
        self.assertEqual(str(exc), "Missing API key for: google, openrouter")


if __name__ == "__main__":
    unittest.main()
