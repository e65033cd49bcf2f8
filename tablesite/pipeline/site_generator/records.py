"""Record loading for the site generator.

This module is the data ingestion point of a build: it discovers the CSV
files of a project and reads each one into a :class:`SourceFile` holding the
file path, its last-modified time and its rows as plain ``dict[str, str]``
records. Every cell is kept as a string; missing cells become ``""``.

Design Principles
-----------------
- Isolated responsibility: contains *no* rendering logic.
- Parsing is delegated to pandas; the rest of the pipeline only ever sees
  ordered lists of dictionaries.

Usage
-----
>>> from pathlib import Path
>>> files = collect_source_files(Path("csv"))  # doctest: +SKIP
>>> source = load_source_file(files[0])  # doctest: +SKIP
>>> isinstance(source.rows, list)  # doctest: +SKIP
True
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd

from tablesite.config import (
    CSV_EXTENSION,
    DEFAULT_CSV_DELIMITER,
    MSG_INVALID_CSV_FILE,
    MSG_NO_CSV_FILE,
)
from tablesite.exceptions import ConfigurationError, DataValidationError


@dataclass
class SourceFile:
    """One input data file and its rows.

    Attributes
    ----------
    path : Path
        Location of the CSV file.
    lastmod : int
        Last-modified time of the file, in unix seconds.
    rows : list[dict[str, str]]
        Row records in file order.
    """

    path: Path
    lastmod: int
    rows: list[dict[str, str]] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.path.stem


def collect_source_files(csv_dir: Path, selector: str | None = None) -> list[Path]:
    """Return the CSV files a build should read.

    Parameters
    ----------
    csv_dir : Path
        The project's ``csv`` directory.
    selector : str | None, optional
        A single file name, with or without the ``.csv`` extension. When
        ``None`` every ``*.csv`` file in ``csv_dir`` is returned, sorted by name.

    Returns
    -------
    list[Path]
        Paths of the selected files.

    Raises
    ------
    ConfigurationError
        If the selector names a file that does not exist, or if no CSV file
        is found.
    """
    if selector:
        name = selector if selector.endswith(CSV_EXTENSION) else f"{selector}{CSV_EXTENSION}"
        candidate = csv_dir / name
        if not candidate.is_file():
            raise ConfigurationError(MSG_INVALID_CSV_FILE, context={"path": str(candidate)})
        return [candidate]
    files = sorted(p for p in csv_dir.glob(f"*{CSV_EXTENSION}") if p.is_file()) if csv_dir.is_dir() else []
    if not files:
        raise ConfigurationError(MSG_NO_CSV_FILE, context={"csv_dir": str(csv_dir)})
    return files


def read_rows(csv_path: Path, delimiter: str = DEFAULT_CSV_DELIMITER) -> list[dict[str, str]]:
    """Read a CSV file into a list of string-valued row dictionaries.

    Parameters
    ----------
    csv_path : Path
        Path to a UTF-8 CSV file with a header line.
    delimiter : str, optional
        Field delimiter, ``","`` by default.

    Returns
    -------
    list[dict[str, str]]
        One mapping per data row, column name to cell text. A file without
        any content yields an empty list.

    Raises
    ------
    DataValidationError
        If pandas cannot parse the file.

    Examples
    --------
    >>> import tempfile
    >>> p = Path(tempfile.gettempdir()) / "rows.csv"
    >>> _ = p.write_text("title,price\\nAlpha,10\\nBeta,\\n", encoding="utf-8")
    >>> read_rows(p)
    [{'title': 'Alpha', 'price': '10'}, {'title': 'Beta', 'price': ''}]
    """
    try:
        dataframe = pd.read_csv(
            csv_path,
            sep=delimiter,
            dtype=str,
            keep_default_na=False,
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError:
        return []
    except (pd.errors.ParserError, UnicodeDecodeError, ValueError) as error:
        raise DataValidationError(
            f"Could not parse {csv_path.name}",
            context={"path": str(csv_path), "reason": str(error)},
        ) from error
    return [
        {str(key): str(value) for key, value in record.items()}
        for record in dataframe.to_dict(orient="records")
    ]


def load_source_file(csv_path: Path, delimiter: str = DEFAULT_CSV_DELIMITER) -> SourceFile:
    """Read one CSV file into a :class:`SourceFile`."""
    rows = read_rows(csv_path, delimiter)
    return SourceFile(path=csv_path, lastmod=int(csv_path.stat().st_mtime), rows=rows)


async def load_source_files(
    paths: list[Path], delimiter: str = DEFAULT_CSV_DELIMITER
) -> list[SourceFile]:
    """Read every path concurrently, preserving the order of ``paths``."""
    return list(
        await asyncio.gather(
            *(asyncio.to_thread(load_source_file, path, delimiter) for path in paths)
        )
    )
