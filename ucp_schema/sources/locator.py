"""Schema source resolution: schema URL -> path under a local base directory."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlsplit


def is_url(locator: str) -> bool:
    return locator.startswith(("http://", "https://"))


@dataclass(frozen=True)
class SchemaSourceResolver:
    """Maps schema URLs onto ``local_base``.

    With ``remote_base="https://ucp.dev/draft"`` the URL
    ``https://ucp.dev/draft/schemas/shopping/checkout.json`` maps to
    ``<local_base>/schemas/shopping/checkout.json``. URLs outside the remote
    base (or with no remote base configured) keep their whole path.

    Only computes paths; the fetcher checks that they exist.
    """

    local_base: Path
    remote_base: str | None = None

    def to_local_path(self, url: str) -> Path:
        remainder = None
        if self.remote_base:
            prefix = self.remote_base.rstrip("/")
            if url == prefix or url.startswith(prefix + "/"):
                remainder = urlsplit(url[len(prefix):]).path
        if remainder is None:
            remainder = urlsplit(url).path
        return Path(self.local_base) / unquote(remainder).lstrip("/")
