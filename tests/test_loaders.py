"""Tests for catalog file loading utilities."""

from io import BytesIO
from pathlib import Path

import pandas as pd
import polars as pl
import pytest

from infusion_mixer.ingest.loaders import (
    detect_file_type,
    load_csv_to_polars,
    load_excel_to_polars,
    load_file_auto,
)
from infusion_mixer.models import CatalogLoadError


class TestDetectFileType:
    """Tests for file type detection."""

    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("syringes.xlsx", "excel"),
            ("SYRINGES.XLS", "excel"),
            ("medications.csv", "csv"),
            ("catalogs/medications.CSV", "csv"),
        ],
    )
    def test_detects_supported_types(self, filename: str, expected: str) -> None:
        """Should detect Excel and CSV catalogs by extension."""
        assert detect_file_type(filename) == expected

    @pytest.mark.parametrize("filename", ["syringes.json", "syringes.", "syringes"])
    def test_raises_for_unsupported_types(self, filename: str) -> None:
        """Should raise CatalogLoadError for unsupported file types."""
        with pytest.raises(CatalogLoadError, match="Unsupported file type"):
            detect_file_type(filename)


class TestLoadCsvToPolars:
    """Tests for CSV catalog loading."""

    def test_loads_syringe_csv(self, tmp_path: Path) -> None:
        """Should load a syringe catalog with numeric columns."""
        csv_path = tmp_path / "syringes.csv"
        csv_path.write_text("id,size_ml,increment_ml\n3cc,3,0.1\n60cc,60,1\n")

        result = load_csv_to_polars(csv_path)

        assert result.height == 2
        assert result["size_ml"].to_list() == [3, 60]
        assert result["increment_ml"].to_list() == [0.1, 1.0]

    def test_id_column_kept_as_string(self, tmp_path: Path) -> None:
        """Numeric-looking ids should keep leading zeros."""
        csv_path = tmp_path / "medications.csv"
        csv_path.write_text("id,name,concentration,units\n0101,Lidocaine,20,mg/mL\n")

        result = load_csv_to_polars(csv_path)

        assert result["id"].dtype == pl.String
        assert result["id"].to_list() == ["0101"]

    def test_loads_from_file_object(self) -> None:
        """Should load CSV content from a file-like object."""
        file_obj = BytesIO(b"id,size_ml,increment_ml\n1cc,1,0.01\n")

        result = load_csv_to_polars(file_obj)

        assert result.height == 1
        assert "increment_ml" in result.columns

    def test_drops_empty_columns(self, tmp_path: Path) -> None:
        """Should drop columns with no values (trailing export columns)."""
        csv_path = tmp_path / "syringes.csv"
        csv_path.write_text("id,size_ml,increment_ml,unused\n3cc,3,0.1,\n6cc,6,0.2,\n")

        result = load_csv_to_polars(csv_path)

        assert "unused" not in result.columns
        assert result.width == 3

    def test_raises_for_nonexistent_file(self, tmp_path: Path) -> None:
        """Should raise CatalogLoadError for a missing file."""
        with pytest.raises(CatalogLoadError, match="Cannot parse CSV file"):
            load_csv_to_polars(tmp_path / "missing.csv")


class TestLoadExcelToPolars:
    """Tests for Excel catalog loading."""

    def test_loads_excel_from_path(self, tmp_path: Path) -> None:
        """Should load a medication sheet from an Excel workbook."""
        excel_path = tmp_path / "medications.xlsx"
        pd.DataFrame(
            {
                "id": ["0101", "0202"],
                "name": ["Lidocaine", "Fentanyl"],
                "concentration": [20.0, 50.0],
                "units": ["mg/mL", "mcg/mL"],
            }
        ).to_excel(excel_path, index=False)

        result = load_excel_to_polars(excel_path)

        assert isinstance(result, pl.DataFrame)
        assert result.height == 2
        assert result["id"].to_list() == ["0101", "0202"]

    def test_loads_specific_sheet(self, tmp_path: Path) -> None:
        """Should load a sheet by name."""
        excel_path = tmp_path / "catalogs.xlsx"
        with pd.ExcelWriter(excel_path) as writer:
            pd.DataFrame({"size_ml": [3]}).to_excel(
                writer, sheet_name="Syringes", index=False
            )
            pd.DataFrame({"name": ["Lidocaine"]}).to_excel(
                writer, sheet_name="Medications", index=False
            )

        result = load_excel_to_polars(excel_path, sheet_name="Medications")

        assert "name" in result.columns

    def test_raises_for_invalid_file(self, tmp_path: Path) -> None:
        """Should raise CatalogLoadError for a file that is not a workbook."""
        invalid_path = tmp_path / "invalid.xlsx"
        invalid_path.write_text("not an excel file")

        with pytest.raises(CatalogLoadError, match="Cannot parse Excel file"):
            load_excel_to_polars(invalid_path)


class TestLoadFileAuto:
    """Tests for auto-detecting file loader."""

    def test_auto_loads_csv(self, tmp_path: Path) -> None:
        """Should dispatch .csv paths to the CSV loader."""
        csv_path = tmp_path / "syringes.csv"
        csv_path.write_text("id,size_ml,increment_ml\n3cc,3,0.1\n")

        assert load_file_auto(csv_path).height == 1

    def test_auto_loads_excel_string_path(self, tmp_path: Path) -> None:
        """Should dispatch .xlsx string paths to the Excel loader."""
        excel_path = tmp_path / "syringes.xlsx"
        pd.DataFrame({"id": ["3cc"], "size_ml": [3]}).to_excel(excel_path, index=False)

        assert load_file_auto(str(excel_path)).columns == ["id", "size_ml"]

    def test_requires_filename_for_file_object(self) -> None:
        """Should require filename for file-like objects."""
        with pytest.raises(CatalogLoadError, match="filename must be provided"):
            load_file_auto(BytesIO(b"id\n3cc\n"))

    def test_accepts_filename_for_file_object(self) -> None:
        """Should use the provided filename for type detection."""
        result = load_file_auto(BytesIO(b"id\n3cc\n"), filename="syringes.csv")
        assert result["id"].to_list() == ["3cc"]
