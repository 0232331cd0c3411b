"""
Tests for loading RevisionConfig from YAML files.
"""

from decimal import Decimal

import pytest
import yaml

from revision_config.loader import compute_checksum, load_revision_config, load_yaml_file
from revision_config.schema import OrderKind, RevisionConfig

PURCHASE_YAML = """\
order_kind: purchase
lock_timeout_seconds: 2.5
cost_threshold:
  percent: "0.05"
  absolute: "1000"
  mode: OR
approvers:
  - {id: approver-1, name: Michael Chen, role: Purchasing Manager, level: 1}
  - {id: approver-2, name: Jennifer Martinez, role: Finance Director, level: 2}
"""


def write(tmp_path, text, name="revisions.yaml"):
    path = tmp_path / name
    path.write_text(text)
    return path


class TestLoadRevisionConfig:

    def test_load_purchase_config(self, tmp_path):
        config = load_revision_config(write(tmp_path, PURCHASE_YAML))

        assert config.order_kind == OrderKind.PURCHASE
        assert config.lock_timeout_seconds == 2.5
        assert [a.approver_id for a in config.approvers] == ["approver-1", "approver-2"]
        assert config.cost_threshold.absolute_threshold == Decimal("1000")

    def test_accepts_str_path(self, tmp_path):
        path = write(tmp_path, "order_kind: sales\n")

        assert load_revision_config(str(path)) == RevisionConfig.for_sales_orders()

    def test_load_logs_checksum(self, tmp_path, captured_logs):
        config = load_revision_config(write(tmp_path, PURCHASE_YAML))

        loaded = [r for r in captured_logs() if r["message"] == "revision_config_loaded"]
        assert len(loaded) == 1
        assert loaded[0]["checksum"] == compute_checksum(config.to_dict())

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_revision_config(tmp_path / "absent.yaml")

    def test_empty_file_missing_order_kind(self, tmp_path):
        with pytest.raises(KeyError):
            load_revision_config(write(tmp_path, ""))


class TestLoadYamlFile:

    def test_non_mapping_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="expected a mapping"):
            load_yaml_file(write(tmp_path, "- a\n- b\n"))

    def test_malformed_yaml(self, tmp_path):
        with pytest.raises(yaml.YAMLError):
            load_yaml_file(write(tmp_path, "order_kind: [purchase\n"))


class TestChecksum:

    def test_key_order_does_not_matter(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})

    def test_different_configs_differ(self):
        purchase = RevisionConfig.for_purchase_orders().to_dict()
        sales = RevisionConfig.for_sales_orders().to_dict()

        assert compute_checksum(purchase) != compute_checksum(sales)
        assert len(compute_checksum(purchase)) == 64
