"""Tests for usb_ingest.__main__ module."""

import sys
from unittest.mock import patch

import yaml


class TestMainModule:
    """Tests for __main__.py entry point."""

    def test_main_module_runs(self, sample_card, temp_dir):
        config = temp_dir / "rules.yaml"
        config.write_text(yaml.safe_dump({
            "rules": [{"match": "**/*.jpg", "destination": str(temp_dir / "photos")}],
        }))

        with patch.object(
            sys, "argv",
            ["prog", "--config", str(config), "copy", str(sample_card)]
        ):
            from usb_ingest.__main__ import main
            main()

        assert (temp_dir / "photos" / "IMG_0001.JPG").exists()

    def test_main_module_importable(self):
        """Test that __main__ can be imported."""
        import usb_ingest.__main__ as main_module
        assert hasattr(main_module, "main")
