from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from promptree import config


class ConfigBehaviorTests(unittest.TestCase):
    def _with_config(self, payload: object | None):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        config_path = Path(tmp.name) / "promptree" / "config.json"
        if payload is not None:
            config_path.parent.mkdir(parents=True)
            text = payload if isinstance(payload, str) else json.dumps(payload)
            config_path.write_text(text, encoding="utf-8")
        patcher = mock.patch("promptree.config.CONFIG_PATH", config_path)
        patcher.start()
        self.addCleanup(patcher.stop)
        return config_path

    def test_missing_config_uses_defaults(self) -> None:
        self._with_config(None)

        self.assertEqual(config.load_config(), {})
        self.assertEqual(config.load_page_size(), 20)
        self.assertEqual(config.load_max_file_bytes(), 512 * 1024)
        self.assertEqual(config.load_extra_ignores(), ())
        self.assertEqual(config.load_prompt_format(), "xml")
        self.assertEqual(config.load_token_encoding(), "cl100k_base")

    def test_valid_values_are_loaded(self) -> None:
        self._with_config(
            {
                "page_size": 50,
                "max_file_kib": 64,
                "extra_ignores": ["*.log", "  ", 3, "tmp/"],
                "prompt_format": " Markdown ",
                "token_encoding": "o200k_base",
            }
        )

        self.assertEqual(config.load_page_size(), 50)
        self.assertEqual(config.load_max_file_bytes(), 64 * 1024)
        self.assertEqual(config.load_extra_ignores(), ("*.log", "tmp/"))
        self.assertEqual(config.load_prompt_format(), "markdown")
        self.assertEqual(config.load_token_encoding(), "o200k_base")

    def test_invalid_values_fall_back(self) -> None:
        self._with_config({"page_size": True, "max_file_kib": -1, "prompt_format": "html", "token_encoding": ""})

        self.assertEqual(config.load_page_size(), 20)
        self.assertEqual(config.load_max_file_bytes(), 512 * 1024)
        self.assertEqual(config.load_prompt_format(), "xml")
        self.assertEqual(config.load_token_encoding(), "cl100k_base")

    def test_malformed_json_is_logged_and_ignored(self) -> None:
        self._with_config("{not json")

        with self.assertLogs("promptree.config", level="WARNING"):
            self.assertEqual(config.load_config(), {})

    def test_non_object_json_is_ignored(self) -> None:
        self._with_config([1, 2, 3])
        self.assertEqual(config.load_config(), {})

    def test_save_prompt_format_round_trips_and_rejects_unknown(self) -> None:
        config_path = self._with_config(None)

        config.save_prompt_format("markdown")
        config.save_prompt_format("yaml")

        self.assertEqual(config.load_prompt_format(), "markdown")
        self.assertEqual(json.loads(config_path.read_text(encoding="utf-8")), {"prompt_format": "markdown"})


if __name__ == "__main__":
    unittest.main()
