"""Fetch schema documents from local files or HTTP(S) URLs."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

import httpx
import yaml

from ucp_schema.errors import NetworkError, SchemaNotFound, SchemaParseError
from ucp_schema.sources.locator import SchemaSourceResolver, is_url

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def parse_document(text: str, locator: str) -> dict:
    """Parse JSON (or YAML for ``.yaml``/``.yml`` locators) into a mapping."""
    if locator.lower().endswith(YAML_SUFFIXES):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise SchemaParseError(f"invalid YAML in {locator}: {e}", locator) from e
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise SchemaParseError(f"invalid JSON in {locator}: {e}", locator) from e

    if not isinstance(data, dict):
        raise SchemaParseError(f"{locator}: document root must be an object", locator)
    return data


class Fetcher:
    """Reads documents by locator.

    URL locators are read from the local mirror when a ``SchemaSourceResolver``
    is configured and over HTTP otherwise. Repeated calls for the same
    locator have no side effect other than I/O.
    """

    def __init__(
        self,
        resolver: SchemaSourceResolver | None = None,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        self.resolver = resolver
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._lock = threading.Lock()

    def fetch(self, locator: str) -> dict:
        if is_url(locator):
            if self.resolver is not None:
                path = self.resolver.to_local_path(locator)
                logger.debug("mapped %s -> %s", locator, path)
                return self._read_file(path, locator)
            return self._fetch_remote(locator)
        return self._read_file(Path(locator), locator)

    def identity(self, locator: str) -> str:
        """Normalized key for a locator: two locators naming the same file match."""
        if is_url(locator):
            if self.resolver is not None:
                return str(self.resolver.to_local_path(locator).resolve())
            return locator
        return str(Path(locator).resolve())

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> Fetcher:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _read_file(self, path: Path, locator: str) -> dict:
        logger.debug("reading %s", path)
        try:
            text = path.read_text(encoding="utf-8")
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            raise SchemaNotFound(
                f"failed to fetch schema {locator}: file not found ({path})", locator
            ) from None
        except OSError as e:
            raise SchemaNotFound(f"failed to fetch schema {locator}: {e}", locator) from e
        except UnicodeDecodeError as e:
            raise SchemaParseError(f"{locator} is not valid UTF-8: {e}", locator) from e
        return parse_document(text, str(path))

    def _fetch_remote(self, url: str) -> dict:
        with self._lock:
            if self._client is None:
                self._client = httpx.Client(timeout=self.timeout, follow_redirects=True)

        logger.debug("GET %s", url)
        try:
            response = self._client.get(url)
        except httpx.RequestError as e:
            raise NetworkError(f"failed to fetch {url}: {e}", url) from e

        if response.status_code == 404:
            raise SchemaNotFound(f"failed to fetch schema {url}: HTTP 404", url)
        if response.is_error:
            raise NetworkError(
                f"failed to fetch schema {url}: HTTP {response.status_code}", url
            )
        return parse_document(response.text, url)
