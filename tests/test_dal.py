"""Tests for the SQLite store: migrations, diffing and batched writes"""
import sqlite3

import pytest

from dal import DAL, KeySnapshot, MIGRATIONS, Write, diff_new, table_columns
from errors import SchemaMigrationError, StoreIntegrityError
from schema import Animal, Group, Image


def animal(n, **fields):
  return Animal(url=f"https://example.org/listings/{n}", name=f"Pet {n}", **fields)


class TestMigrations:

  def test_fresh_database_gets_all_tables(self, db_path):
    applied = DAL(db_path).init_database()
    assert applied == [3, 5]

    with sqlite3.connect(db_path) as conn:
      names = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    assert {"animals", "images", "groups"} <= names

  def test_second_run_applies_nothing(self, db_path):
    store = DAL(db_path)
    store.init_database()
    assert store.init_database() == []

  def test_legacy_table_renamed(self, db_path):
    with sqlite3.connect(db_path) as conn:
      conn.execute("CREATE TABLE data (link TEXT, name TEXT)")
      conn.execute("INSERT INTO data VALUES ('https://example.org/listings/1', 'Old Rex')")

    applied = DAL(db_path).init_database()

    assert applied[:2] == [1, 2]
    store = DAL(db_path)
    assert store.existing_keys("animals", "url") == {"https://example.org/listings/1"}
    with sqlite3.connect(db_path) as conn:
      assert "status" in table_columns(conn, "animals")

  def test_missing_columns_added(self, db_path):
    with sqlite3.connect(db_path) as conn:
      conn.execute("CREATE TABLE groups (url TEXT, name TEXT)")

    DAL(db_path).init_database()

    with sqlite3.connect(db_path) as conn:
      assert {"review_labels", "social", "phone_3"} <= table_columns(conn, "groups")

  def test_duplicate_legacy_rows_block_unique_index(self, db_path):
    with sqlite3.connect(db_path) as conn:
      conn.execute("CREATE TABLE data (link TEXT, name TEXT)")
      conn.executemany("INSERT INTO data VALUES (?, ?)", [
        ("https://example.org/listings/1", "Rex"),
        ("https://example.org/listings/1", "Rex again"),
      ])

    with pytest.raises(SchemaMigrationError):
      DAL(db_path).init_database()

  def test_migration_failure_raises(self, db_path, monkeypatch):
    def broken(conn):
      conn.execute("CREATE TABLE animals (")

    monkeypatch.setattr(MIGRATIONS[2], "apply", broken)
    with pytest.raises(SchemaMigrationError):
      DAL(db_path).init_database()

  def test_versions_are_ordered(self):
    versions = [m.version for m in MIGRATIONS]
    assert versions == sorted(versions)


class TestDiff:

  def test_new_keys_in_order(self):
    known = KeySnapshot("animals", "url", {"b"})
    assert diff_new(["c", "b", "a", "c"], known) == ["c", "a"]

  def test_snapshot_grows(self):
    known = KeySnapshot("animals", "url")
    known.add(["a"])
    assert "a" in known
    assert diff_new(["a", "b"], known) == ["b"]

  def test_missing_table_has_no_keys(self, db_path):
    assert DAL(db_path).existing_keys("animals", "url") == set()


class TestPersist:

  def test_round_trip(self, dal):
    rex = animal(1, desexed=True, images=("https://img/1.jpg",))
    written = dal.persist_batch([
      Write("animals", [rex]),
      Write("images", [Image("https://img/1.jpg", rex.url)]),
    ])

    assert written == 2
    row = dal.fetch_rows("animals")[0]
    assert row["url"] == rex.url
    assert row["desexed"] == "true"
    assert dal.fetch_rows("images") == [{"url": "https://img/1.jpg", "animal_url": rex.url}]

  def test_rewrite_replaces_row(self, dal):
    dal.persist("animals", [animal(1)])
    dal.persist("animals", [Animal(url="https://example.org/listings/1", name="Renamed")])

    assert dal.count("animals") == 1
    assert dal.fetch_rows("animals")[0]["name"] == "Renamed"

  def test_persisted_keys_are_no_longer_new(self, dal):
    candidates = [animal(1).url, animal(2).url, animal(3).url]
    assert diff_new(candidates, dal.snapshot("animals")) == candidates

    dal.persist("animals", [animal(1), animal(2)])

    assert diff_new(candidates, dal.snapshot("animals")) == [animal(3).url]

  def test_groups_table_name(self, dal):
    dal.persist("groups", [Group(url="https://example.org/groups/1", states=("NSW",))])
    assert dal.column_values("groups", "url") == ["https://example.org/groups/1"]

  def test_duplicate_key_aborts_batch(self, dal):
    with pytest.raises(StoreIntegrityError):
      dal.persist("animals", [animal(1), animal(2), animal(1)])
    assert dal.count("animals") == 0

  def test_orphan_image_aborts_whole_batch(self, dal):
    with pytest.raises(StoreIntegrityError):
      dal.persist_batch([
        Write("animals", [animal(1)]),
        Write("images", [Image("https://img/9.jpg", "https://example.org/listings/9")]),
      ])
    assert dal.count("animals") == 0
    assert dal.count("images") == 0

  def test_image_of_stored_animal(self, dal):
    dal.persist("animals", [animal(1)])
    dal.persist("images", [Image("https://img/1.jpg", "https://example.org/listings/1")])
    assert dal.count("images") == 1

  def test_unknown_column(self, dal):
    with pytest.raises(StoreIntegrityError):
      dal.persist("animals", [{"url": "https://example.org/1", "colour": "brown"}])

  def test_missing_key(self, dal):
    with pytest.raises(StoreIntegrityError):
      dal.persist("groups", [{"url": "", "name": "Nameless"}])

  def test_column_values(self, dal):
    dal.persist("animals", [
      animal(1, group_url="https://example.org/groups/b"),
      animal(2, group_url="https://example.org/groups/a"),
      animal(3, group_url="https://example.org/groups/a"),
      animal(4),
    ])
    assert dal.column_values("animals", "group_url") == [
      "https://example.org/groups/a",
      "https://example.org/groups/b",
    ]
