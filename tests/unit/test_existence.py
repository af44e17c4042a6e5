"""
Unit tests for the SKU existence check.
"""

from pathlib import Path
import sys

# Add project root to path for imports
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from sku_verify.core.existence import check_sku_existence
from sku_verify.core.introspector import SchemaIntrospector
from sku_verify.core.models import Side


class TestSkuExistence:
    """Set difference of SKU codes in both directions."""

    def snapshots(self, executor):
        introspector = SchemaIntrospector(executor)
        return (introspector.snapshot("vendor_sku_flat_table"),
                introspector.snapshot("im_sku_flat_table"))

    def test_reports_both_directions_with_names(self, con, executor):
        con.execute("CREATE TABLE vendor_sku_flat_table (sku_code VARCHAR, name VARCHAR)")
        con.execute("CREATE TABLE im_sku_flat_table (sku_code VARCHAR, name VARCHAR)")
        con.execute("INSERT INTO vendor_sku_flat_table VALUES ('A1', 'Shirt'), ('B2', 'Mug'), "
                    "('B2', 'Mug'), (NULL, 'Orphan')")
        con.execute("INSERT INTO im_sku_flat_table VALUES ('A1', 'Shirt'), ('C3', 'Cap')")

        report = check_sku_existence(executor, *self.snapshots(executor))

        assert [r.entity_key.sku_code for r in report.missing_in_new] == ["B2"]
        assert report.missing_in_new[0].side_missing is Side.NEW
        assert report.missing_in_new[0].available_values == {"name": "Mug"}
        assert [r.entity_key.sku_code for r in report.missing_in_old] == ["C3"]
        assert report.missing_in_old[0].side_missing is Side.OLD

    def test_without_name_column(self, con, executor):
        con.execute("CREATE TABLE vendor_sku_flat_table (sku_code VARCHAR)")
        con.execute("CREATE TABLE im_sku_flat_table (sku_code VARCHAR)")
        con.execute("INSERT INTO vendor_sku_flat_table VALUES ('A1'), ('B2')")
        con.execute("INSERT INTO im_sku_flat_table VALUES ('A1'), ('B2')")

        report = check_sku_existence(executor, *self.snapshots(executor))

        assert report.is_empty
