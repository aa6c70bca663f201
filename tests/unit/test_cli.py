"""Unit tests for the catalog CLI."""

import json
from decimal import Decimal
from unittest.mock import patch

import pandas as pd
import pytest

from catalog_export.cli import build_parser, main, setup_logging
from catalog_export.store import JsonCatalogStore

PRODUCTS = [
    {"id": "p1", "name": "Widget", "sku": "W-1", "type": "simple", "price": 19.99},
    {
        "id": "p2",
        "name": "Shirt",
        "sku": "SH-1",
        "type": "variable",
        "attributes": [{"id": "a1", "name": "Color", "values": ["Red", "Blue"]}],
        "variants": [
            {"id": "v1", "sku": "SH-1-R", "price": 9, "attributes": {"Color": "Red"}},
        ],
    },
]


@pytest.fixture(autouse=True)
def no_log_files():
    """Keep CLI runs from creating log files in the working directory."""
    with patch("catalog_export.cli.setup_logging"):
        yield


@pytest.fixture
def catalog_path(tmp_path):
    products_file = tmp_path / "products.json"
    products_file.write_text(json.dumps(PRODUCTS), encoding="utf-8")
    catalog = tmp_path / "catalog.json"

    assert main(["--catalog", str(catalog), "import-json", str(products_file)]) == 0
    return catalog


@pytest.mark.unit
class TestParser:
    """Tests for argument parsing."""

    def test_catalog_defaults_to_environment(self, monkeypatch):
        monkeypatch.setenv("CATALOG_PATH", "/data/shop.json")

        args = build_parser().parse_args(["list"])

        assert args.catalog == "/data/shop.json"

    def test_export_defaults(self, monkeypatch):
        monkeypatch.delenv("CATALOG_PATH", raising=False)

        args = build_parser().parse_args(["export"])

        assert args.catalog == "catalog.json"
        assert args.output == "output"
        assert args.filename is None
        assert args.attribute_slots == 1
        assert args.stdout is False
        assert args.log_dir == "logs"

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


@pytest.mark.unit
class TestCommands:
    """Tests for the CLI commands end to end."""

    def test_import_json_adds_products(self, catalog_path):
        products = JsonCatalogStore(catalog_path).list()

        assert sorted(p.sku for p in products) == ["SH-1", "W-1"]
        assert {p.sku: p.price for p in products}["W-1"] == Decimal("19.99")

    def test_export_writes_named_file(self, catalog_path, tmp_path):
        output_dir = tmp_path / "out"

        exit_code = main(
            [
                "--catalog",
                str(catalog_path),
                "export",
                "--output",
                str(output_dir),
                "--filename",
                "shop.csv",
            ]
        )

        assert exit_code == 0
        df = pd.read_csv(output_dir / "shop.csv", dtype=str, keep_default_na=False)
        assert sorted(df["Type"].tolist()) == ["simple", "variable", "variation"]

    def test_export_to_stdout(self, catalog_path, capsys):
        exit_code = main(["--catalog", str(catalog_path), "export", "--stdout"])

        assert exit_code == 0
        out = capsys.readouterr().out
        assert out.startswith("ID,Type,SKU,Name,")
        assert "SH-1-R" in out

    @patch("catalog_export.cli.suggested_filename", return_value="dated.csv")
    def test_export_uses_suggested_filename(
        self, mock_suggested_filename, catalog_path, tmp_path
    ):
        exit_code = main(
            ["--catalog", str(catalog_path), "export", "--output", str(tmp_path)]
        )

        assert exit_code == 0
        assert (tmp_path / "dated.csv").exists()
        mock_suggested_filename.assert_called_once_with(prefix="woocommerce-products")

    def test_list_prints_products(self, catalog_path, capsys):
        assert main(["--catalog", str(catalog_path), "list"]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 2
        assert any(line.endswith("\tsimple\tW-1\tWidget") for line in lines)

    def test_delete_removes_product(self, catalog_path):
        store = JsonCatalogStore(catalog_path)
        target = next(p for p in store.list() if p.sku == "W-1")

        assert main(["--catalog", str(catalog_path), "delete", target.id]) == 0
        assert [p.sku for p in store.list()] == ["SH-1"]

    def test_delete_unknown_product_fails(self, catalog_path):
        assert main(["--catalog", str(catalog_path), "delete", "missing"]) == 1

    def test_import_missing_file_fails(self, tmp_path):
        exit_code = main(
            ["--catalog", str(tmp_path / "catalog.json"), "import-json", "nope.json"]
        )

        assert exit_code == 1

    def test_export_empty_catalog_writes_header_only(self, tmp_path):
        exit_code = main(
            [
                "--catalog",
                str(tmp_path / "catalog.json"),
                "export",
                "--output",
                str(tmp_path),
                "--filename",
                "empty.csv",
            ]
        )

        assert exit_code == 0
        lines = (tmp_path / "empty.csv").read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        assert lines[0].endswith("Attribute 1 global")

    def test_import_with_repeated_sku_leaves_catalog_unchanged(
        self, catalog_path, tmp_path
    ):
        before = catalog_path.read_text(encoding="utf-8")
        batch = [
            {"id": "n1", "name": "Lamp", "sku": "L-1", "type": "simple", "price": 5},
            {"id": "n2", "name": "Lamp 2", "sku": "L-1", "type": "simple", "price": 6},
        ]
        batch_file = tmp_path / "batch.json"
        batch_file.write_text(json.dumps(batch), encoding="utf-8")

        exit_code = main(["--catalog", str(catalog_path), "import-json", str(batch_file)])

        assert exit_code == 1
        assert catalog_path.read_text(encoding="utf-8") == before

    def test_import_clashing_with_catalog_adds_nothing(self, catalog_path, tmp_path):
        batch = [
            {"id": "n1", "name": "Lamp", "sku": "L-1", "type": "simple"},
            {"id": "n2", "name": "Widget again", "sku": "W-1", "type": "simple"},
        ]
        batch_file = tmp_path / "batch.json"
        batch_file.write_text(json.dumps(batch), encoding="utf-8")

        exit_code = main(["--catalog", str(catalog_path), "import-json", str(batch_file)])

        assert exit_code == 1
        skus = sorted(p.sku for p in JsonCatalogStore(catalog_path).list())
        assert skus == ["SH-1", "W-1"]


@pytest.mark.unit
class TestSetupLogging:
    """Tests for the loguru sink configuration."""

    @patch("catalog_export.cli.logger")
    def test_console_and_daily_file_sinks(self, mock_logger, tmp_path):
        setup_logging(verbose=False, log_dir=str(tmp_path / "logs"))

        mock_logger.remove.assert_called_once_with()
        console, daily_file = mock_logger.add.call_args_list
        assert console.kwargs["level"] == "INFO"
        assert daily_file.args[0] == tmp_path / "logs" / "catalog_export_{time:YYYY-MM-DD}.log"
        assert daily_file.kwargs["level"] == "DEBUG"
        assert daily_file.kwargs["rotation"] == "1 day"

    @patch("catalog_export.cli.logger")
    def test_verbose_lowers_console_level(self, mock_logger, tmp_path):
        setup_logging(verbose=True, log_dir=str(tmp_path))

        console = mock_logger.add.call_args_list[0]
        assert console.kwargs["level"] == "DEBUG"

    @patch("catalog_export.cli.setup_logging")
    def test_main_passes_log_dir(self, mock_setup_logging, tmp_path):
        main(["--log-dir", str(tmp_path), "--catalog", str(tmp_path / "c.json"), "list"])

        mock_setup_logging.assert_called_once_with(False, str(tmp_path))
