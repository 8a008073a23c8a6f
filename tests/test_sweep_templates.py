from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path

import yaml

from jobs.templates import default_sweep_templates
from jobs.templates import default_templates_path
from jobs.templates import load_sweep_templates


class SweepTemplatesTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmpdir = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def _write(self, payload) -> str:
        path = self.tmpdir / "templates.yml"
        path.write_text(yaml.safe_dump(payload), encoding="utf-8")
        return str(path)

    def test_shipped_file_loads_cleanly(self):
        templates, warning = load_sweep_templates(default_templates_path())
        self.assertIsNone(warning)
        self.assertEqual(templates.version, "sweep_templates_v1")
        self.assertEqual(templates.daily_reminder_lines, default_sweep_templates().daily_reminder_lines)

    def test_custom_values_override_defaults(self):
        path = self._write(
            {
                "version": "custom_v2",
                "daily_reminder": {"title": "Morning!", "lines": ["Clock in", "", "Check tickets"]},
                "weekly_digest": {"description": "Last seven days"},
            }
        )
        templates, warning = load_sweep_templates(path)
        self.assertIsNone(warning)
        self.assertEqual(templates.version, "custom_v2")
        self.assertEqual(templates.daily_reminder_title, "Morning!")
        self.assertEqual(templates.daily_reminder_lines, ["Clock in", "Check tickets"])
        self.assertEqual(templates.weekly_digest_title, "Weekly Activity Report")
        self.assertEqual(templates.weekly_digest_description, "Last seven days")
        self.assertIn("- Clock in", templates.daily_reminder_text())

    def test_missing_file_falls_back_with_warning(self):
        templates, warning = load_sweep_templates(os.path.join(self.tmpdir, "nope.yml"))
        self.assertIn("not found", warning)
        self.assertEqual(templates, default_sweep_templates())

    def test_non_mapping_falls_back_with_warning(self):
        templates, warning = load_sweep_templates(self._write(["just", "a", "list"]))
        self.assertIn("Invalid sweep templates format", warning)
        self.assertEqual(templates.daily_reminder_title, "Daily Staff Reminder")

    def test_broken_yaml_falls_back_with_warning(self):
        path = self.tmpdir / "broken.yml"
        path.write_text("daily_reminder: [unclosed", encoding="utf-8")
        _, warning = load_sweep_templates(str(path))
        self.assertIn("Failed to read", warning)

    def test_empty_path(self):
        _, warning = load_sweep_templates(None)
        self.assertIn("path missing", warning)


if __name__ == "__main__":
    unittest.main()
