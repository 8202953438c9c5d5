"""
Tests for the build_cosmogony command line script.
"""
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "scripts"))

from build_cosmogony import main
from cosmogony.storage import CosmogonyStorage


@pytest.mark.integration
class TestBuildScript:
    """Test the CLI entry point."""

    def test_build_and_save(self, test_parquet, tmp_path, capsys):
        db_path = str(tmp_path / "out.db")

        assert main(["-i", test_parquet, "-o", db_path, "--log-level", "WARNING"]) == 0

        out = capsys.readouterr().out
        assert "COSMOGONY OF test_boundaries.parquet" in out
        assert "UNHANDLED ADMIN LEVELS" in out

        storage = CosmogonyStorage(db_path)
        try:
            assert len(storage.get_cosmogonies()) == 1
        finally:
            storage.close()

    def test_failure_returns_error_code(self, tmp_path, capsys):
        code = main(["-i", str(tmp_path / "missing.parquet"), "-o", str(tmp_path / "out.db")])

        assert code == 1
        assert "Cosmogony failed" in capsys.readouterr().err

    def test_malformed_rules_are_reported(self, test_parquet, tmp_path, capsys):
        rules_dir = tmp_path / "rules"
        rules_dir.mkdir()
        (rules_dir / "fr.yaml").write_text('admin_level:\n  - country\n', encoding="utf-8")

        code = main(["-i", test_parquet, "-o", str(tmp_path / "out.db"), "--rules", str(rules_dir)])

        assert code == 1
        assert "Cosmogony failed" in capsys.readouterr().err

    def test_lightweight_without_country(self, test_parquet, tmp_path, capsys):
        code = main(["-i", test_parquet, "-o", str(tmp_path / "out.db"), "--no-geom"])

        assert code == 1
        assert "no country_code has been provided" in capsys.readouterr().err
