"""Tests for CLI entrypoint wiring."""

from __future__ import annotations

import io
from pathlib import Path
import unittest
from unittest.mock import patch

from fiesta_chat.__main__ import main


class MainEntrypointTests(unittest.TestCase):
    """Validate top-level main() behavior."""

    def test_main_ensures_config_and_runs_app(self) -> None:
        with patch("fiesta_chat.__main__.ensure_config_dir") as ensure_mock, patch(
            "fiesta_chat.__main__.FiestaChatApp"
        ) as app_cls_mock:
            app_instance = app_cls_mock.return_value
            main([])
            ensure_mock.assert_called_once_with(None)
            app_cls_mock.assert_called_once_with(config_path=None)
            app_instance.run.assert_called_once()

    def test_main_passes_custom_config_path(self) -> None:
        with patch("fiesta_chat.__main__.ensure_config_dir") as ensure_mock, patch(
            "fiesta_chat.__main__.FiestaChatApp"
        ) as app_cls_mock:
            main(["--config", "/tmp/fiesta/custom.toml"])
            ensure_mock.assert_called_once_with(Path("/tmp/fiesta"))
            app_cls_mock.assert_called_once_with(
                config_path=Path("/tmp/fiesta/custom.toml")
            )

    def test_version_flag_prints_and_skips_app(self) -> None:
        with patch("fiesta_chat.__main__.FiestaChatApp") as app_cls_mock, patch(
            "sys.stdout", new_callable=io.StringIO
        ) as stdout:
            main(["--version"])
        self.assertTrue(stdout.getvalue().startswith("fiesta-chat "))
        app_cls_mock.assert_not_called()


if __name__ == "__main__":
    unittest.main()
