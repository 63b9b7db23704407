"""``$ref`` and JSON pointer helpers (RFC 6901)."""

from __future__ import annotations

import os
from urllib.parse import unquote, urljoin

from ucp_schema.sources.locator import is_url


def split_ref(ref: str) -> tuple[str, str]:
    """Split a ``$ref`` into (locator, pointer).

    "foo.json#/a/b" -> ("foo.json", "/a/b")
    "foo.json"      -> ("foo.json", "")
    "#/a/b"         -> ("", "/a/b")
    "#"             -> ("", "")
    """
    if "#" not in ref:
        return ref, ""
    locator, fragment = ref.split("#", 1)
    return locator, unquote(fragment)


def decode_token(token: str) -> str:
    return token.replace("~1", "/").replace("~0", "~")


def encode_token(token: str) -> str:
    return str(token).replace("~", "~0").replace("/", "~1")


def child(pointer: str, token) -> str:
    return f"{pointer}/{encode_token(token)}"


def resolve_pointer(document, pointer: str):
    """Return the value at ``pointer`` ("" is the whole document).

    Raises:
        LookupError: the pointer does not name a value in the document.
    """
    if pointer == "":
        return document
    if not pointer.startswith("/"):
        raise LookupError(f"unsupported fragment '{pointer}' (expected '' or '/...')")

    current = document
    for raw in pointer[1:].split("/"):
        token = decode_token(raw)
        if isinstance(current, dict):
            if token not in current:
                raise LookupError(f"'{token}' not found")
            current = current[token]
        elif isinstance(current, list):
            try:
                current = current[int(token)]
            except (ValueError, IndexError):
                raise LookupError(f"'{token}' is not a valid index") from None
        else:
            raise LookupError(f"cannot descend into a {type(current).__name__} at '{token}'")
    return current


def pointer_exists(document, pointer: str) -> bool:
    try:
        resolve_pointer(document, pointer)
    except LookupError:
        return False
    return True


def join_locator(base: str | None, target: str) -> str:
    """Resolve ``target`` relative to the document located at ``base``."""
    if is_url(target):
        return target
    if base is None:
        return os.path.normpath(target)
    if is_url(base):
        return urljoin(base, target)
    if os.path.isabs(target):
        return os.path.normpath(target)
    return os.path.normpath(os.path.join(os.path.dirname(base), target))
