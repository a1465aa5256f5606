"""End-to-end tests for the batch driver and CLI"""
import csv
import sqlite3

import pytest
import responses

import dal as dal_module
from config import RunConfig
from conftest import BASE, animal_page, group_page, listing_page, search_page
from dal import DAL
from schema import Image
from scraper import chunked, export_csv, main, merge_identifiers, run_scrape, show_report, unique_images

SEARCH = f"{BASE}/listings/search"
GROUP_URL = f"{BASE}/groups/10/happy-paws"


def detail_url(n):
  return f"{BASE}/listings/{n}"


def mock_site(count, failing=()):
  responses.add(responses.GET, SEARCH, json=search_page(range(1, count + 1), count))
  for n in range(1, count + 1):
    if n in failing:
      responses.add(responses.GET, detail_url(n), status=500)
    else:
      responses.add(responses.GET, detail_url(n), body=animal_page(
        name=f"Pet {n}",
        images=[f"https://images.petrescue.com.au/c_fill,w_100,h_100/pet-{n}.jpg"],
      ))
  responses.add(responses.GET, f"{BASE}/groups", body=listing_page(["/groups/10/happy-paws"], kind="groups"))
  responses.add(responses.GET, GROUP_URL, body=group_page())


def detail_calls():
  return [c for c in responses.calls if "/listings/" in c.request.url and "/search" not in c.request.url]


@pytest.fixture
def config(tmp_path, db_path):
  return RunConfig(
    categories=["dogs"],
    index_cache="bypass",
    detail_cache="use",
    db_path=db_path,
    cache_dir=str(tmp_path / "cache"),
    max_workers=1,
    batch_size=10,
  )


class TestRunScrape:

  @responses.activate
  def test_full_run(self, config):
    mock_site(12)

    result = run_scrape(config)

    assert result["errors"] == []
    tables = result["tables"]
    assert (tables["animals"].new, tables["animals"].persisted) == (12, 12)
    assert tables["images"].persisted == 12
    assert tables["groups"].persisted == 1

    store = DAL(config.db_path)
    assert store.count("animals") == 12
    assert store.count("images") == 12
    group = store.fetch_rows("groups")[0]
    assert group["url"] == GROUP_URL
    assert group["name"] == "Happy Paws Rescue"
    image = store.fetch_rows("images")[0]
    assert image["url"].endswith("w_638,h_638/pet-1.jpg")
    assert image["animal_url"] == detail_url(1)

  @responses.activate
  def test_second_run_only_indexes(self, config):
    mock_site(3)
    run_scrape(config)
    first_detail_calls = len(detail_calls())

    result = run_scrape(config)

    assert len(detail_calls()) == first_detail_calls
    assert result["tables"]["animals"].existing == 3
    assert result["tables"]["animals"].new == 0
    assert DAL(config.db_path).count("animals") == 3

  @responses.activate
  def test_failed_batch_is_skipped(self, config):
    mock_site(12, failing={5})

    result = run_scrape(config)

    store = DAL(config.db_path)
    assert store.existing_keys("animals", "url") == {detail_url(11), detail_url(12)}
    assert store.count("images") == 2
    assert len(result["errors"]) == 1
    assert "animals batch 1" in result["errors"][0]

  @responses.activate
  def test_failed_batch_adds_no_images(self, config):
    mock_site(12, failing={5})

    result = run_scrape(config)

    assert result["tables"]["images"].new == 2
    assert result["tables"]["images"].persisted == 2

  @responses.activate
  def test_shared_thumbnail_within_batch(self, config):
    mock_site(10)
    litter = "https://images.petrescue.com.au/c_fill,w_100,h_100/litter.jpg"
    for n in (1, 2):
      responses.replace(responses.GET, detail_url(n), body=animal_page(name=f"Pet {n}", images=[litter]))

    result = run_scrape(config)
    again = run_scrape(config)

    assert result["errors"] == []
    assert again["errors"] == []
    store = DAL(config.db_path)
    assert store.count("animals") == 10
    shared = [row for row in store.fetch_rows("images") if row["url"].endswith("litter.jpg")]
    assert shared == [{"url": "https://images.petrescue.com.au/c_fill,w_638,h_638/litter.jpg", "animal_url": detail_url(2)}]
    assert result["tables"]["images"].new == 9

  @responses.activate
  def test_resume_after_failure(self, config):
    mock_site(12, failing={5})
    run_scrape(config)

    responses.replace(responses.GET, detail_url(5), body=animal_page(name="Pet 5", images=[]))
    result = run_scrape(config)

    assert result["errors"] == []
    assert result["tables"]["animals"].new == 10
    assert DAL(config.db_path).count("animals") == 12

  @responses.activate
  def test_only_animals(self, config):
    mock_site(2)

    result = run_scrape(config, only="animals")

    assert "groups" not in result["tables"]
    assert DAL(config.db_path).count("groups") == 0

  @responses.activate
  def test_workers_keep_results(self, config):
    mock_site(12)
    config.max_workers = 4

    run_scrape(config, only="animals")

    assert DAL(config.db_path).count("animals") == 12

  @responses.activate
  def test_index_failure_reported(self, config):
    responses.add(responses.GET, SEARCH, status=503)
    responses.add(responses.GET, f"{BASE}/groups", body=listing_page([], kind="groups"))

    result = run_scrape(config)

    assert result["errors"][0].startswith("animals:")
    assert DAL(config.db_path).count("animals") == 0


class TestMain:

  def argv(self, config):
    return [
      "--db", config.db_path,
      "--cache-dir", config.cache_dir,
      "--categories", "dogs",
      "--index-cache", "bypass",
    ]

  @responses.activate
  def test_exit_zero(self, config):
    mock_site(2)
    assert main(self.argv(config)) == 0

  @responses.activate
  def test_exit_one_on_failed_batch(self, config):
    mock_site(2, failing={1})
    assert main(self.argv(config)) == 1

  def test_exit_two_on_migration_failure(self, config, monkeypatch):
    def broken(conn):
      raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(dal_module.MIGRATIONS[2], "apply", broken)
    assert main(self.argv(config)) == 2

  def test_report(self, config, dal):
    dal.persist("groups", [{"url": GROUP_URL, "name": "Happy Paws"}])
    assert main(["--db", config.db_path, "--report"]) == 0
    assert show_report(config.db_path) == {"animals": 0, "images": 0, "groups": 1}

  def test_export(self, config, dal, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    dal.persist("groups", [{"url": GROUP_URL, "name": "Happy Paws"}])

    filename = export_csv(config.db_path, "groups")

    with open(tmp_path / filename, newline="", encoding="utf-8") as f:
      rows = list(csv.DictReader(f))
    assert rows[0]["url"] == GROUP_URL
    assert rows[0]["name"] == "Happy Paws"


def test_chunked():
  assert list(chunked(list("abcdefghijk"), 10)) == [list("abcdefghij"), ["k"]]


def test_unique_images_last_animal_wins():
  images = [
    Image("https://img/a.jpg", detail_url(1)),
    Image("https://img/b.jpg", detail_url(1)),
    Image("https://img/a.jpg", detail_url(2)),
  ]
  assert unique_images(images) == [
    Image("https://img/a.jpg", detail_url(2)),
    Image("https://img/b.jpg", detail_url(1)),
  ]


def test_merge_identifiers():
  assert merge_identifiers(["a", "b"], ["b", "c"]) == ["a", "b", "c"]
