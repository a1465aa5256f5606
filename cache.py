"""
On-disk response cache
v1.0.0

Maps a request URL to the response body fetched for it. Entries live at
<root>/<first hash char>/<rest of hash>, where the hash is the MD5 of the
URL, so no single directory grows without bound.

Entries are never evicted. put() never replaces an existing entry (first
writer wins); only overwrite() does, and the fetcher calls it for the
"refresh" policy alone.
"""
import hashlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def cache_key(url: str) -> str:
  """128-bit hex digest of the URL"""
  return hashlib.md5(url.encode("utf-8")).hexdigest()


class Cache:
  """Content-addressable store of fetched response bodies"""

  def __init__(self, root: str):
    self.root = Path(root)

  def path_for(self, url: str) -> Path:
    key = cache_key(url)
    return self.root / key[0] / key[1:]

  def __contains__(self, url: str) -> bool:
    return self.path_for(url).is_file()

  def get(self, url: str) -> Optional[bytes]:
    """Return the cached body for url, or None"""
    path = self.path_for(url)
    try:
      return path.read_bytes()
    except FileNotFoundError:
      return None

  def put(self, url: str, body: bytes) -> bool:
    """
    Store body for url unless an entry already exists.
    Returns True if this call created the entry.
    """
    path = self.path_for(url)
    if path.exists():
      return False

    tmp = self._write_temp(path, body)
    try:
      os.link(tmp, path)
    except FileExistsError:
      # Another writer got there first
      return False
    finally:
      os.unlink(tmp)

    logger.debug("Cached %s -> %s", url, path)
    return True

  def overwrite(self, url: str, body: bytes) -> None:
    """Create or replace the entry for url"""
    path = self.path_for(url)
    tmp = self._write_temp(path, body)
    os.replace(tmp, path)
    logger.debug("Refreshed cache for %s -> %s", url, path)

  def _write_temp(self, path: Path, body: bytes) -> str:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
    with os.fdopen(fd, "wb") as f:
      f.write(body)
    return tmp
