"""
Reference database migration for the modeling plugin.

QSWAT ships a template reference database (an Access file, or SQLite for
SWAT+) whose ``crop`` and ``usersoil`` tables must know every land-use and
soil class used by the project. This module adds the missing classes by
reading each table, appending rows, and writing the table back under the same
name (drop, create, insert). That is a destructive change to the template, so
every migration is described by a before/after pair of tables, the original
table is saved as CSV before anything is dropped, and a saved table can be
restored with ``restore_table``.

Access databases are opened through pyodbc; ``.sqlite``/``.db`` files through
sqlite3. Both are DB-API connections and are used the same way.
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd

from swatprep.config.defaults import DEFAULT_CROP_TEMPLATE
from swatprep.core.cache import atomic_output
from swatprep.core.lookup import LABEL_COLUMN

logger = logging.getLogger(__name__)

ACCESS_DRIVER = "{Microsoft Access Driver (*.mdb, *.accdb)}"
ACCESS_SUFFIXES = (".mdb", ".accdb")

CROP_TABLE = "crop"
USERSOIL_TABLE = "usersoil"
CROP_NAME_COLUMN = "CPNM"
CROP_NUMBER_COLUMN = "ICNUM"
SOIL_NAME_COLUMN = "SNAM"
OBJECTID_COLUMN = "OBJECTID"
TEMPLATE_COLUMN = "template"

MIGRATION_LOG_COLUMNS = ["table", "rows_before", "rows_after", "rows_added", "added_names"]


@dataclass
class TableMigration:
    """
    Planned replacement of one reference database table.

    Attributes:
        table: Table name
        before: Table contents as read from the database
        after: Table contents to write back
        added: Names (CPNM or SNAM values) of the appended rows
        column_types: Declared SQL type per column, reused when the table is recreated
    """

    table: str
    before: pd.DataFrame
    after: pd.DataFrame
    added: list[str] = field(default_factory=list)
    column_types: dict[str, str] = field(default_factory=dict)

    @property
    def rows_added(self) -> int:
        return len(self.after) - len(self.before)

    @property
    def is_noop(self) -> bool:
        return not self.added


def access_connection_string(db_path: Path) -> str:
    """ODBC connection string for an Access database file."""
    return f"DRIVER={ACCESS_DRIVER};DBQ={Path(db_path).resolve()};"


def connect(db_path: Path):
    """
    Open a DB-API connection to a reference database.

    Raises:
        FileNotFoundError: If the database file does not exist
    """
    db_path = Path(db_path)
    if not db_path.exists():
        raise FileNotFoundError(f"Reference database not found: {db_path}")

    if db_path.suffix.lower() in ACCESS_SUFFIXES:
        import pyodbc

        logger.info(f"Connecting to Access database via ODBC: {db_path}")
        return pyodbc.connect(access_connection_string(db_path), autocommit=False)

    logger.info(f"Connecting to SQLite database: {db_path}")
    return sqlite3.connect(db_path)


def read_table(conn, table: str) -> pd.DataFrame:
    """Read a whole table into a DataFrame."""
    cursor = conn.cursor()
    cursor.execute(f"SELECT * FROM [{table}]")
    columns = [d[0] for d in cursor.description]
    rows = [tuple(row) for row in cursor.fetchall()]
    cursor.close()

    logger.debug(f"Read {len(rows)} row(s) from table '{table}'")
    return pd.DataFrame.from_records(rows, columns=columns)


def read_column_types(conn, table: str) -> dict[str, str]:
    """
    Declared SQL type of every column of a table.

    SQLite reports types through ``PRAGMA table_info``; ODBC connections
    through the catalog (``cursor.columns``), with the size appended to
    character types.
    """
    cursor = conn.cursor()
    if isinstance(conn, sqlite3.Connection):
        cursor.execute(f"PRAGMA table_info([{table}])")
        types = {row[1]: row[2] for row in cursor.fetchall() if row[2]}
    else:
        types = {}
        for row in cursor.columns(table=table):
            type_name = str(row.type_name).upper()
            if type_name in ("VARCHAR", "CHAR", "TEXT") and row.column_size:
                type_name = f"{type_name}({row.column_size})"
            types[row.column_name] = type_name
    cursor.close()
    return types


def _sql_type(dtype) -> str:
    if pd.api.types.is_bool_dtype(dtype) or pd.api.types.is_integer_dtype(dtype):
        return "INTEGER"
    if pd.api.types.is_float_dtype(dtype):
        return "DOUBLE"
    return "VARCHAR(255)"


def _match_dtypes(appended: pd.DataFrame, like: pd.DataFrame) -> pd.DataFrame:
    # appended rows may hold None in numeric columns; keep them numeric
    appended = appended.copy()
    for col in like.columns:
        dtype = like[col].dtype
        if pd.api.types.is_bool_dtype(dtype):
            continue
        if pd.api.types.is_integer_dtype(dtype):
            appended[col] = pd.to_numeric(appended[col]).astype("Int64")
        elif pd.api.types.is_float_dtype(dtype):
            appended[col] = pd.to_numeric(appended[col]).astype("float64")
    return appended


def _begin(conn) -> None:
    # sqlite3 only opens its implicit transaction before DML; DROP/CREATE must be inside it too
    if isinstance(conn, sqlite3.Connection) and not conn.in_transaction:
        conn.execute("BEGIN")


def replace_table(conn, table: str, df: pd.DataFrame, column_types: dict[str, str] | None = None) -> None:
    """
    Drop a table and recreate it with the rows of ``df``.

    Columns listed in ``column_types`` are recreated with that declared type;
    others get a type derived from the column's dtype. The caller opens the
    transaction and commits; on error the connection should be rolled back.
    """
    column_types = column_types or {}
    cursor = conn.cursor()
    column_defs = ", ".join(
        f"[{col}] {column_types.get(col) or _sql_type(df[col].dtype)}" for col in df.columns
    )
    names = ", ".join(f"[{col}]" for col in df.columns)
    placeholders = ", ".join("?" for _ in df.columns)

    cursor.execute(f"DROP TABLE [{table}]")
    cursor.execute(f"CREATE TABLE [{table}] ({column_defs})")

    values = df.astype(object).where(df.notna(), None)
    rows = list(values.itertuples(index=False, name=None))
    if rows:
        cursor.executemany(f"INSERT INTO [{table}] ({names}) VALUES ({placeholders})", rows)
    cursor.close()

    logger.info(f"Replaced table '{table}' with {len(rows)} row(s)")


def _next_ids(table: pd.DataFrame, column: str, count: int) -> list[int]:
    start = int(pd.to_numeric(table[column]).max()) + 1 if len(table) else 1
    return list(range(start, start + count))


def plan_crop_migration(
    crop: pd.DataFrame,
    landuse_lookup: pd.DataFrame,
    default_template: str = DEFAULT_CROP_TEMPLATE,
) -> TableMigration:
    """
    Add a crop row for every land-use label the crop table does not know.

    New rows are cloned from a template crop (lookup column ``template``, or
    ``default_template``) with CPNM set to the label and ICNUM (and OBJECTID,
    when present) set to the next free number.

    Raises:
        ValueError: If a template crop is not in the table
    """
    known = set(crop[CROP_NAME_COLUMN].astype(str).str.strip())
    new_rows = []
    added: list[str] = []

    for _, entry in landuse_lookup.drop_duplicates(LABEL_COLUMN).iterrows():
        label = str(entry[LABEL_COLUMN]).strip()
        if label in known:
            continue

        template = entry.get(TEMPLATE_COLUMN)
        template = default_template if pd.isna(template) or not str(template).strip() else str(template).strip()
        matches = crop[crop[CROP_NAME_COLUMN].astype(str).str.strip() == template]
        if matches.empty:
            raise ValueError(f"Template crop '{template}' for land use '{label}' not found in crop table")

        row = matches.iloc[0].copy()
        row[CROP_NAME_COLUMN] = label
        new_rows.append(row)
        added.append(label)

    after = crop.copy()
    if new_rows:
        appended = pd.DataFrame(new_rows).reset_index(drop=True)
        appended[CROP_NUMBER_COLUMN] = _next_ids(crop, CROP_NUMBER_COLUMN, len(appended))
        if OBJECTID_COLUMN in crop.columns:
            appended[OBJECTID_COLUMN] = _next_ids(crop, OBJECTID_COLUMN, len(appended))
        appended = _match_dtypes(appended, crop)
        after = pd.concat([crop, appended], ignore_index=True)

    return TableMigration(table=CROP_TABLE, before=crop, after=after, added=added)


def plan_usersoil_migration(usersoil: pd.DataFrame, soils_lookup: pd.DataFrame) -> TableMigration:
    """
    Append a usersoil row for every soil label the table does not know.

    Lookup columns are matched to usersoil columns case-insensitively; the
    label becomes SNAM, and usersoil columns with no lookup counterpart are
    left null (OBJECTID gets the next free number when present).
    """
    known = set(usersoil[SOIL_NAME_COLUMN].astype(str).str.strip())
    by_upper = {str(col).upper(): col for col in soils_lookup.columns}

    new_rows = []
    added: list[str] = []

    for _, entry in soils_lookup.drop_duplicates(LABEL_COLUMN).iterrows():
        label = str(entry[LABEL_COLUMN]).strip()
        if label in known:
            continue

        row = {}
        for col in usersoil.columns:
            source_col = by_upper.get(str(col).upper())
            row[col] = entry[source_col] if source_col is not None else None
        row[SOIL_NAME_COLUMN] = label
        new_rows.append(row)
        added.append(label)

    after = usersoil.copy()
    if new_rows:
        appended = pd.DataFrame(new_rows, columns=usersoil.columns)
        if OBJECTID_COLUMN in usersoil.columns:
            appended[OBJECTID_COLUMN] = _next_ids(usersoil, OBJECTID_COLUMN, len(appended))
        appended = _match_dtypes(appended, usersoil)
        after = pd.concat([usersoil, appended], ignore_index=True)

    return TableMigration(table=USERSOIL_TABLE, before=usersoil, after=after, added=added)


def save_snapshot(table: pd.DataFrame, dst_path: Path) -> Path:
    """Save a table's contents as CSV (used for the pre-migration backup)."""
    with atomic_output(dst_path) as tmp_path:
        table.to_csv(tmp_path, index=False)
    logger.info(f"Saved snapshot of {len(table)} row(s) to {dst_path}")
    return Path(dst_path)


def write_migration_log(migrations: list[TableMigration], dst_path: Path) -> Path:
    """Write a one-row-per-table summary of applied migrations."""
    log = pd.DataFrame(
        [
            {
                "table": m.table,
                "rows_before": len(m.before),
                "rows_after": len(m.after),
                "rows_added": m.rows_added,
                "added_names": ";".join(m.added),
            }
            for m in migrations
        ],
        columns=MIGRATION_LOG_COLUMNS,
    )
    with atomic_output(dst_path) as tmp_path:
        log.to_csv(tmp_path, index=False)
    logger.info(f"Wrote migration log: {dst_path}")
    return Path(dst_path)


def apply_migrations(conn, migrations: list[TableMigration]) -> None:
    """
    Write every non-empty migration and commit once.

    All tables are replaced inside one transaction; on any error it is rolled
    back, leaving every table as it was, and the error re-raised.
    """
    try:
        _begin(conn)
        for migration in migrations:
            if migration.is_noop:
                logger.info(f"Table '{migration.table}' already up to date")
                continue
            logger.info(f"Adding {migration.rows_added} row(s) to '{migration.table}': {migration.added}")
            replace_table(conn, migration.table, migration.after, migration.column_types)
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def patch_reference_db(
    db_path: Path,
    landuse_lookup: pd.DataFrame,
    soils_lookup: pd.DataFrame,
    snapshot_dir: Path,
    log_path: Path,
    default_template: str = DEFAULT_CROP_TEMPLATE,
) -> list[TableMigration]:
    """
    Add the project's land-use and soil classes to the reference database.

    Before any table is replaced its original contents are saved as
    ``<snapshot_dir>/<table>_before.csv``. An existing snapshot is kept, so a
    re-run after a partial failure still holds the untouched original.

    Args:
        db_path: Reference database (patched in place)
        landuse_lookup: Reconciled land-use lookup (label = crop name)
        soils_lookup: Reconciled soils lookup (label = soil name, plus soil properties)
        snapshot_dir: Directory for the before-migration CSV snapshots
        log_path: Migration log CSV, written last
        default_template: Crop cloned for land uses without a template column

    Returns:
        The migrations, in the order applied
    """
    conn = connect(db_path)
    try:
        crop = read_table(conn, CROP_TABLE)
        usersoil = read_table(conn, USERSOIL_TABLE)

        migrations = [
            plan_crop_migration(crop, landuse_lookup, default_template),
            plan_usersoil_migration(usersoil, soils_lookup),
        ]

        for migration in migrations:
            migration.column_types = read_column_types(conn, migration.table)
            snapshot_path = Path(snapshot_dir) / f"{migration.table}_before.csv"
            if snapshot_path.exists():
                logger.info(f"Keeping existing snapshot {snapshot_path}")
            else:
                save_snapshot(migration.before, snapshot_path)

        apply_migrations(conn, migrations)
    finally:
        conn.close()

    write_migration_log(migrations, log_path)
    return migrations


def restore_table(db_path: Path, table: str, snapshot_path: Path) -> int:
    """
    Put a table back to the contents of a saved snapshot.

    Returns:
        Number of rows restored
    """
    snapshot = pd.read_csv(snapshot_path)
    conn = connect(db_path)
    try:
        column_types = read_column_types(conn, table)
        _begin(conn)
        replace_table(conn, table, snapshot, column_types)
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

    logger.info(f"Restored table '{table}' from {snapshot_path}")
    return len(snapshot)
