"""
Lookup tables linking raster class codes to model class names.

Soil and land-use rasters store integer codes (map unit keys, land cover
classes). The modeling plugin resolves each code through a lookup table to a
soil name or crop name in its reference database. A code without a row cannot
be resolved by the plugin at all, so reconciliation fails hard instead of
emitting an incomplete table.
"""

import logging
from collections.abc import Iterable
from pathlib import Path

import pandas as pd

from swatprep.core.cache import atomic_output
from swatprep.core.errors import UnmappedClassCode

logger = logging.getLogger(__name__)

CODE_COLUMN = "code"
LABEL_COLUMN = "label"


def read_reference_table(path: Path) -> pd.DataFrame:
    """
    Read a reference table mapping class codes to labels.

    The CSV must have ``code`` and ``label`` columns; any further columns
    (soil properties, crop template names) are carried along.

    Raises:
        ValueError: If required columns are missing or codes are duplicated
    """
    table = pd.read_csv(path)

    missing = [c for c in (CODE_COLUMN, LABEL_COLUMN) if c not in table.columns]
    if missing:
        raise ValueError(f"Reference table {Path(path).name} is missing column(s): {missing}")

    table[CODE_COLUMN] = table[CODE_COLUMN].astype("int64")
    table[LABEL_COLUMN] = table[LABEL_COLUMN].astype(str).str.strip()

    duplicated = sorted(table.loc[table[CODE_COLUMN].duplicated(), CODE_COLUMN].unique().tolist())
    if duplicated:
        raise ValueError(f"Reference table {Path(path).name} has duplicate codes: {duplicated}")

    logger.debug(f"Read {len(table)} reference row(s) from {Path(path).name}")
    return table


def reconcile_lookup(
    codes: Iterable[int],
    reference: pd.DataFrame,
    table_name: str = "reference table",
) -> pd.DataFrame:
    """
    Build the lookup table for the codes present in a raster.

    Args:
        codes: Distinct class codes found in the raster
        reference: Table with ``code`` and ``label`` columns
        table_name: Name used in error messages

    Returns:
        Reference rows for exactly the given codes, sorted by code

    Raises:
        UnmappedClassCode: If any code has no reference row
    """
    codes = {int(c) for c in codes}
    known = set(reference[CODE_COLUMN].astype("int64"))

    unmapped = codes - known
    if unmapped:
        logger.critical(f"{len(unmapped)} raster code(s) have no row in {table_name}: {sorted(unmapped)}")
        raise UnmappedClassCode(sorted(unmapped), table=table_name)

    lookup = reference[reference[CODE_COLUMN].isin(codes)].sort_values(CODE_COLUMN).reset_index(drop=True)
    logger.info(f"Reconciled {len(lookup)} class code(s) against {table_name}")
    return lookup


def write_lookup_table(
    table: pd.DataFrame,
    dst_path: Path,
    rename: dict[str, str] | None = None,
) -> Path:
    """
    Write a lookup table as CSV.

    Args:
        table: Lookup rows
        dst_path: Output CSV
        rename: Optional column mapping; when given only the mapped columns
            are written, in mapping order (e.g. {"code": "SOIL_ID", "label": "SNAM"})

    Returns:
        Path to the written CSV
    """
    if rename:
        table = table[list(rename)].rename(columns=rename)

    with atomic_output(dst_path) as tmp_path:
        table.to_csv(tmp_path, index=False)

    logger.info(f"Wrote lookup table with {len(table)} row(s): {dst_path}")
    return Path(dst_path)


def read_lookup_table(path: Path) -> pd.DataFrame:
    """Read a lookup table written by ``write_lookup_table``."""
    return pd.read_csv(path)
