"""
Test suite for the command line interface.
"""

import pytest
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sku_verify import __version__
from sku_verify.cli import apply_overrides, build_parser, main
from sku_verify.config.manager import VerifierConfig


CONFIG = """
database:
  engine: duckdb
  path_template: "{tenant}.duckdb"
tenants: [tenant_a]
common_columns: [name]
reports:
  output_dir: reports
  html: true
logging:
  log_dir: null
"""

SKU_SCRIPT = """
    CREATE TABLE vendor_sku_flat_table (sku_code VARCHAR, name VARCHAR, color VARCHAR);
    CREATE TABLE im_sku_flat_table (sku_code VARCHAR, name VARCHAR, attr_color VARCHAR);
    INSERT INTO vendor_sku_flat_table VALUES ('A1', 'Shirt', 'red');
    INSERT INTO im_sku_flat_table VALUES ('A1', 'Shirt', 'crimson');
"""


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("TENANT_DBS", "DB_HOST", "DB_PORT", "DB_USER", "DB_PASSWORD"):
        monkeypatch.delenv(name, raising=False)


def write_config(base: Path) -> Path:
    schemas = base / "schemas"
    schemas.mkdir()
    (schemas / "attribute-mappings").write_text("attr_color -> color\n", encoding="utf-8")
    (schemas / "category-mappings").write_text("", encoding="utf-8")
    path = base / "verifier.yaml"
    path.write_text(CONFIG, encoding="utf-8")
    return path


class TestParser:
    """Argument parsing and overrides."""

    def test_defaults(self):
        args = build_parser().parse_args([])

        assert args.config == "verifier.yaml"
        assert args.strategy is None
        assert not args.benchmark
        assert not args.no_rich
        assert not args.verbose

    def test_overrides(self):
        args = build_parser().parse_args([
            "--strategy", "nested", "--benchmark", "--row-cap", "50",
            "--tenants", "a, b,", "--no-html", "--excel",
        ])

        config = apply_overrides(VerifierConfig(), args)

        assert config.price.strategy == "nested"
        assert config.price.benchmark
        assert config.price.row_cap == 50
        assert config.tenants == ["a", "b"]
        assert not config.reports.html
        assert config.reports.excel

    def test_unknown_strategy_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--strategy", "hash_join"])

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            build_parser().parse_args(["--version"])

        assert exc.value.code == 0
        assert __version__ in capsys.readouterr().out


class TestMain:
    """End-to-end entry point."""

    def test_create_sample(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert main(["--create-sample"]) == 0
        assert (tmp_path / "verifier_sample.yaml").exists()

    def test_missing_config_returns_error(self, tmp_path, capsys):
        assert main([str(tmp_path / "missing.yaml"), "--no-rich"]) == 1
        assert "--create-sample" in capsys.readouterr().out

    def test_full_run(self, tmp_path, make_tenant_db):
        config_path = write_config(tmp_path)
        make_tenant_db("tenant_a", SKU_SCRIPT)

        assert main([str(config_path), "--no-rich", "--tenants", "tenant_a"]) == 0

        index_pages = list((tmp_path / "reports").glob("*/index.html"))
        assert len(index_pages) == 1
        tenant_page = index_pages[0].parent / "tenant_a.html"
        assert "crimson" in tenant_page.read_text(encoding="utf-8")

    def test_failed_tenant_still_exits_cleanly(self, tmp_path):
        config_path = write_config(tmp_path)

        assert main([str(config_path), "--no-rich", "--tenants", "ghost"]) == 0
