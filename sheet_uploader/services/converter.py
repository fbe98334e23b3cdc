"""
Converter Service - Single Responsibility: scan and normalize spreadsheets.

Every sheet of every workbook is copied cell by cell as text; only the
header row is renamed through the column mapping.
"""
from __future__ import annotations

import asyncio
import logging
import zipfile
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..errors import ConversionError
from ..models import ColumnMapping, ScanResult

logger = logging.getLogger(__name__)

SPREADSHEET_EXTENSIONS = {".xlsx", ".xls"}


def cell_to_text(value: Any) -> Optional[str]:
    """Render a cell value as text; empty cells stay empty."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


class ExcelConverter:
    """Implements IConverter with openpyxl."""

    @staticmethod
    def is_spreadsheet(path: Path) -> bool:
        return path.suffix.lower() in SPREADSHEET_EXTENSIONS

    def scan_directory(self, source: Path) -> ScanResult:
        """
        Collect all spreadsheets recursively.

        Args:
            source: Root folder to scan

        Returns:
            ScanResult with sorted file paths and their total size
        """
        source = Path(source)
        if not source.is_dir():
            raise ConversionError(f"Source folder not found: {source}")

        files = sorted(
            item for item in source.rglob("*")
            if item.is_file() and self.is_spreadsheet(item)
        )
        total_size = sum(item.stat().st_size for item in files)
        logger.info(f"Scanned {source}: {len(files)} spreadsheets, {total_size} bytes")
        return ScanResult(file_count=len(files), total_size=total_size, files=tuple(files))

    async def convert_files(
        self,
        source: Path,
        target: Path,
        mappings: Sequence[ColumnMapping],
    ) -> List[Path]:
        """Convert every spreadsheet under source into target; stops at the first failure."""
        source = Path(source)
        target = Path(target)
        mapping = {m.original: m.mapped for m in mappings}
        scan = self.scan_directory(source)

        converted = []
        for file_path in scan.files:
            output = target / file_path.relative_to(source)
            converted.append(await asyncio.to_thread(self.convert_file, file_path, output, mapping))
        logger.info(f"Converted {len(converted)} files into {target}")
        return converted

    def convert_file(self, source_file: Path, output: Path, mapping: Dict[str, str]) -> Path:
        """Copy one workbook to output, renaming header cells."""
        try:
            workbook = load_workbook(source_file, read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, OSError, KeyError, ValueError) as exc:
            raise ConversionError(f"Cannot read workbook {source_file}: {exc}") from exc

        output.parent.mkdir(parents=True, exist_ok=True)
        result = Workbook(write_only=True)
        try:
            for sheet in workbook.worksheets:
                out_sheet = result.create_sheet(title=sheet.title)
                for row_index, row in enumerate(sheet.iter_rows(values_only=True)):
                    cells = [cell_to_text(value) for value in row]
                    if row_index == 0:
                        cells = [mapping.get(cell, cell) if cell is not None else None for cell in cells]
                    out_sheet.append(cells)
            result.save(output)
        except OSError as exc:
            raise ConversionError(f"Cannot write workbook {output}: {exc}") from exc
        finally:
            workbook.close()

        logger.debug(f"Converted {source_file} -> {output}")
        return output
