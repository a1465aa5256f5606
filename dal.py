"""
Data Access Layer (DAL)
v1.0.0

All reads and writes of the SQLite store go through this module.

Tables:
- animals (unique key: url)
- images  (unique key: url, animal_url -> animals.url)
- groups  (unique key: url)

Writes are INSERT OR REPLACE keyed on each table's unique index, so a
record is stored at most once per key and a later run may refresh it.
Every call to persist_batch() is a single transaction: a batch is written
completely or not at all.

Usage:
  dal = DAL("data.sqlite")
  dal.init_database()
  known = dal.snapshot("animals", "url")
  new_urls = diff_new(candidate_urls, known)
  dal.persist_batch([Write("animals", animals, ("url",)), Write("images", images, ("url",))])
  known.add(a.url for a in animals)
"""
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Sequence, Set, Tuple

from errors import SchemaMigrationError, StoreIntegrityError

logger = logging.getLogger(__name__)


# ============================================
# Schema
# ============================================

TABLE_COLUMNS: Dict[str, List[Tuple[str, str]]] = {
  "animals": [
    ("url", "TEXT"),
    ("name", "TEXT"),
    ("description", "TEXT"),
    ("gender", "TEXT"),
    ("breed", "TEXT"),
    ("species", "TEXT"),
    ("site_id", "INTEGER"),
    ("status", "TEXT"),
    ("group_url", "TEXT"),
    ("state", "TEXT"),
    ("interstate", "TEXT"),
    ("last_updated", "TEXT"),
    ("scraped_at", "TEXT"),
    ("age", "TEXT"),
    ("adoption_fee", "TEXT"),
    ("desexed", "TEXT"),
    ("vaccinated", "TEXT"),
    ("wormed", "TEXT"),
    ("heartworm_treated", "TEXT"),
  ],
  "images": [
    ("url", "TEXT"),
    ("animal_url", "TEXT REFERENCES animals(url)"),
  ],
  "groups": [
    ("url", "TEXT"),
    ("name", "TEXT"),
    ("about", "TEXT"),
    ("adoption_process", "TEXT"),
    ("states", "TEXT"),
    ("social", "TEXT"),
    ("contact_name", "TEXT"),
    ("phone_1", "TEXT"),
    ("phone_2", "TEXT"),
    ("phone_3", "TEXT"),
    ("review_labels", "TEXT"),
    ("scraped_at", "TEXT"),
  ],
}

UNIQUE_KEYS = {
  "animals": ("url",),
  "images": ("url",),
  "groups": ("url",),
}

# child table -> (column, parent table, parent key)
FOREIGN_KEYS = {
  "images": ("animal_url", "animals", "url"),
}

LEGACY_TABLE = "data"
LEGACY_KEY_COLUMN = "link"


def quote(identifier: str) -> str:
  return '"' + identifier.replace('"', '""') + '"'


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
  row = conn.execute(
    "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
  ).fetchone()
  return row is not None


def table_columns(conn: sqlite3.Connection, table: str) -> Set[str]:
  return {row[1].lower() for row in conn.execute(f"PRAGMA table_info({quote(table)})")}


def index_exists(conn: sqlite3.Connection, name: str) -> bool:
  row = conn.execute(
    "SELECT 1 FROM sqlite_master WHERE type = 'index' AND name = ?", (name,)
  ).fetchone()
  return row is not None


def unique_index_name(table: str) -> str:
  return f"idx_{table}_unique_key"


# ============================================
# Migrations
# ============================================

@dataclass
class Migration:
  """One schema step. apply() runs only when is_needed() says so."""
  version: int
  description: str
  is_needed: Callable[[sqlite3.Connection], bool]
  apply: Callable[[sqlite3.Connection], None]


def _missing_tables(conn):
  return [t for t in TABLE_COLUMNS if not table_exists(conn, t)]


def _missing_columns(conn):
  missing = []
  for table, columns in TABLE_COLUMNS.items():
    if not table_exists(conn, table):
      continue
    present = table_columns(conn, table)
    missing.extend((table, name, sql_type) for name, sql_type in columns if name not in present)
  return missing


def _missing_indexes(conn):
  return [t for t in UNIQUE_KEYS if not index_exists(conn, unique_index_name(t))]


def _create_tables(conn):
  for table in _missing_tables(conn):
    columns = ", ".join(f"{quote(name)} {sql_type}" for name, sql_type in TABLE_COLUMNS[table])
    conn.execute(f"CREATE TABLE IF NOT EXISTS {quote(table)} ({columns})")


def _add_columns(conn):
  for table, name, sql_type in _missing_columns(conn):
    # Constraints are only declared at CREATE time
    bare_type = sql_type.split()[0]
    conn.execute(f"ALTER TABLE {quote(table)} ADD COLUMN {quote(name)} {bare_type}")


def _create_indexes(conn):
  for table in _missing_indexes(conn):
    columns = ", ".join(quote(c) for c in UNIQUE_KEYS[table])
    conn.execute(
      f"CREATE UNIQUE INDEX IF NOT EXISTS {quote(unique_index_name(table))} ON {quote(table)} ({columns})"
    )
  conn.execute('CREATE INDEX IF NOT EXISTS "idx_images_animal_url" ON "images" ("animal_url")')


MIGRATIONS: List[Migration] = [
  Migration(
    1, "rename legacy 'data' table to 'animals'",
    lambda conn: table_exists(conn, LEGACY_TABLE) and not table_exists(conn, "animals"),
    lambda conn: conn.execute(f"ALTER TABLE {quote(LEGACY_TABLE)} RENAME TO \"animals\""),
  ),
  Migration(
    2, "rename legacy animals.link column to url",
    lambda conn: (
      table_exists(conn, "animals")
      and LEGACY_KEY_COLUMN in table_columns(conn, "animals")
      and "url" not in table_columns(conn, "animals")
    ),
    lambda conn: conn.execute(f"ALTER TABLE \"animals\" RENAME COLUMN {quote(LEGACY_KEY_COLUMN)} TO \"url\""),
  ),
  Migration(3, "create missing tables", lambda conn: bool(_missing_tables(conn)), _create_tables),
  Migration(4, "add missing columns", lambda conn: bool(_missing_columns(conn)), _add_columns),
  Migration(5, "create unique key indexes", lambda conn: bool(_missing_indexes(conn)), _create_indexes),
]


# ============================================
# Diff
# ============================================

@dataclass
class KeySnapshot:
  """
  Keys known to be in one table, read once per run and passed between
  pipeline stages. Keys persisted during the run are added as they land.
  """
  table: str
  key_column: str
  keys: Set[str] = field(default_factory=set)

  def __contains__(self, key: str) -> bool:
    return key in self.keys

  def __len__(self) -> int:
    return len(self.keys)

  def add(self, keys: Iterable[str]) -> None:
    self.keys.update(keys)


def diff_new(candidates: Iterable[str], known: KeySnapshot) -> List[str]:
  """Candidates not already in the table, in their original order"""
  return [key for key in dict.fromkeys(candidates) if key not in known]


@dataclass
class Write:
  """Rows destined for one table within a batch"""
  table: str
  records: Sequence[Any]
  unique_keys: Sequence[str] = ("url",)

  def rows(self) -> List[Dict[str, Any]]:
    return [r.to_row() if hasattr(r, "to_row") else dict(r) for r in self.records]


class DAL:
  """
  Data Access Layer - The single gateway to the SQLite store.

  Responsibilities:
  - Schema migrations
  - Existing-key reads for diffing
  - Batched, all-or-nothing writes with key and image checks
  """

  def __init__(self, db_path: str = "data.sqlite"):
    self.db_path = db_path

  # ============================================
  # Database Connection Management
  # ============================================

  @contextmanager
  def _get_connection(self):
    """Get database connection with automatic cleanup"""
    conn = sqlite3.connect(self.db_path)
    conn.row_factory = sqlite3.Row
    try:
      yield conn
      conn.commit()
    except Exception:
      conn.rollback()
      raise
    finally:
      conn.close()

  def init_database(self) -> List[int]:
    """
    Apply every pending migration in order.
    Returns the versions that were applied this time.
    """
    applied = []
    for migration in MIGRATIONS:
      try:
        with self._get_connection() as conn:
          if not migration.is_needed(conn):
            continue
          migration.apply(conn)
      except sqlite3.Error as e:
        raise SchemaMigrationError(
          f"migration {migration.version} ({migration.description}) failed: {e}"
        ) from e
      logger.info("  🔧 Applied migration %d: %s", migration.version, migration.description)
      applied.append(migration.version)

    logger.debug("✅ Database initialized at %s", self.db_path)
    return applied

  # ============================================
  # Reads
  # ============================================

  def existing_keys(self, table: str, key_column: str) -> Set[str]:
    """All keys in table; a table that does not exist yet has none"""
    with self._get_connection() as conn:
      if not table_exists(conn, table):
        return set()
      rows = conn.execute(f"SELECT {quote(key_column)} FROM {quote(table)}").fetchall()
    return {row[0] for row in rows if row[0] is not None}

  def snapshot(self, table: str, key_column: str = "url") -> KeySnapshot:
    """Read a table's keys once for the rest of the run"""
    return KeySnapshot(table, key_column, self.existing_keys(table, key_column))

  def count(self, table: str) -> int:
    with self._get_connection() as conn:
      if not table_exists(conn, table):
        return 0
      return conn.execute(f"SELECT COUNT(*) FROM {quote(table)}").fetchone()[0]

  def column_values(self, table: str, column: str) -> List[str]:
    """Distinct non-null values of a column, sorted"""
    with self._get_connection() as conn:
      if not table_exists(conn, table):
        return []
      rows = conn.execute(
        f"SELECT DISTINCT {quote(column)} FROM {quote(table)} "
        f"WHERE {quote(column)} IS NOT NULL ORDER BY {quote(column)}"
      ).fetchall()
    return [row[0] for row in rows]

  def fetch_rows(self, table: str) -> List[Dict[str, Any]]:
    with self._get_connection() as conn:
      if not table_exists(conn, table):
        return []
      rows = conn.execute(f"SELECT * FROM {quote(table)} ORDER BY rowid").fetchall()
    return [dict(row) for row in rows]

  # ============================================
  # Writes
  # ============================================

  def persist(self, table: str, records: Sequence[Any], unique_keys: Sequence[str] = ("url",)) -> int:
    """Insert-or-replace records into one table as a single transaction"""
    return self.persist_batch([Write(table, records, unique_keys)])

  def persist_batch(self, writes: Sequence[Write]) -> int:
    """
    Write several tables' rows in one transaction.
    Raises StoreIntegrityError, writing nothing, if any write repeats a
    key or any image points at an animal that is not stored or in the batch.
    """
    prepared = [(w, w.rows()) for w in writes]
    batch_keys: Dict[str, Set[Tuple]] = {}

    for write, rows in prepared:
      self._check_columns(write.table, rows)
      keys = self._check_keys(write, rows)
      batch_keys.setdefault(write.table, set()).update(keys)

    written = 0
    with self._get_connection() as conn:
      for write, rows in prepared:
        self._check_parents(conn, write.table, rows, batch_keys)

      for write, rows in prepared:
        if not rows:
          continue
        columns = [name for name, _ in TABLE_COLUMNS[write.table] if name in rows[0]]
        placeholders = ", ".join("?" for _ in columns)
        conn.executemany(
          f"INSERT OR REPLACE INTO {quote(write.table)} ({', '.join(quote(c) for c in columns)}) "
          f"VALUES ({placeholders})",
          [tuple(row.get(c) for c in columns) for row in rows],
        )
        written += len(rows)

    return written

  def _check_columns(self, table: str, rows: List[Dict[str, Any]]) -> None:
    if table not in TABLE_COLUMNS:
      raise StoreIntegrityError(f"unknown table {table!r}")
    declared = {name for name, _ in TABLE_COLUMNS[table]}
    for row in rows:
      unknown = set(row) - declared
      if unknown:
        raise StoreIntegrityError(f"{table}: unknown columns {sorted(unknown)}")

  def _check_keys(self, write: Write, rows: List[Dict[str, Any]]) -> Set[Tuple]:
    seen = set()
    for row in rows:
      key = tuple(row.get(c) for c in write.unique_keys)
      if any(part in (None, "") for part in key):
        raise StoreIntegrityError(f"{write.table}: row without {'/'.join(write.unique_keys)}")
      if key in seen:
        raise StoreIntegrityError(f"{write.table}: duplicate key {key} in batch")
      seen.add(key)
    return seen

  def _check_parents(self, conn, table: str, rows: List[Dict[str, Any]], batch_keys: Dict[str, Set[Tuple]]) -> None:
    if table not in FOREIGN_KEYS or not rows:
      return
    column, parent, parent_key = FOREIGN_KEYS[table]

    in_batch = {key[0] for key in batch_keys.get(parent, set())}
    for ref in {row.get(column) for row in rows} - in_batch:
      found = ref is not None and conn.execute(
        f"SELECT 1 FROM {quote(parent)} WHERE {quote(parent_key)} = ?", (ref,)
      ).fetchone()
      if not found:
        raise StoreIntegrityError(f"{table}.{column} {ref!r} has no row in {parent}")
