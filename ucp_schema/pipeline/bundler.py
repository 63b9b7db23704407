"""Reference bundler: inline ``$ref`` targets into one self-contained document.

Reference kinds:
- ``"#"``: kept as-is in the document being bundled (inlining it would never
  terminate). Inside a fetched document it names that document's root and is
  inlined like any other reference, so a self-reference there is circular
- ``"#/$defs/x"``: resolved against the document the reference appears in
- ``"types/buyer.json"`` or ``"common.json#/$defs/address"``: fetched relative
  to the referencing document, then walked in the context of *that* document,
  so its own ``#/...`` references resolve against its own root

Each distinct document is fetched at most once per bundle call. Following a
reference that is already on the active path raises ``CircularReference``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ucp_schema.errors import AnchorNotFound, CircularReference, RefNotFound, SchemaNotFound
from ucp_schema.events import EventSink, NullEventSink
from ucp_schema.sources.fetcher import Fetcher
from ucp_schema.sources.pointer import child, join_locator, resolve_pointer, split_ref

IN_MEMORY = "<document>"


@dataclass
class BundleContext:
    """State for one bundle call: fetched documents and the active ref path."""

    documents: dict[str, dict] = field(default_factory=dict)  # identity -> parsed document
    root: str = IN_MEMORY  # identity of the document being bundled
    labels: dict[str, str] = field(default_factory=dict)  # identity -> locator as reached
    active: list[tuple[str, str]] = field(default_factory=list)  # (identity, pointer)

    def describe(self, key: tuple[str, str]) -> str:
        identity, pointer = key
        label = self.labels.get(identity, identity)
        return f"{label}#{pointer}" if pointer else label


@dataclass(frozen=True)
class _Frame:
    """The document a walk is currently inside."""

    identity: str
    base: str | None
    root: dict


class Bundler:
    def __init__(self, fetcher: Fetcher, events: EventSink | None = None):
        self.fetcher = fetcher
        self.events = events or NullEventSink()

    def bundle(self, document: dict, base: str | None = None) -> dict:
        """Return a copy of ``document`` with every ``$ref`` except ``"#"`` inlined.

        Args:
            document: Parsed schema. Never modified.
            base: Locator the document was read from; relative references
                resolve against it (against the working directory when None).

        Raises:
            RefNotFound: a referenced document cannot be fetched.
            AnchorNotFound: a fragment does not exist in its target document.
            CircularReference: a reference chain returns to a reference on its path.
        """
        identity = self.fetcher.identity(base) if base else IN_MEMORY
        context = BundleContext(root=identity)
        context.documents[identity] = document
        context.labels[identity] = base or IN_MEMORY

        frame = _Frame(identity, base, document)
        context.active.append((identity, ""))
        bundled = self._walk(document, frame, context, "")
        context.active.pop()
        return bundled

    def _walk(self, value, frame: _Frame, context: BundleContext, pointer: str):
        if isinstance(value, dict):
            if isinstance(value.get("$ref"), str):
                return self._expand(value, frame, context, pointer)
            return {k: self._walk(v, frame, context, child(pointer, k)) for k, v in value.items()}
        if isinstance(value, list):
            return [self._walk(v, frame, context, child(pointer, i)) for i, v in enumerate(value)]
        return value

    def _expand(self, node: dict, frame: _Frame, context: BundleContext, pointer: str):
        ref = node["$ref"]
        siblings = {
            k: self._walk(v, frame, context, child(pointer, k))
            for k, v in node.items()
            if k != "$ref"
        }
        if ref == "#" and frame.identity == context.root:
            return {"$ref": "#", **siblings}

        locator, fragment = split_ref(ref)
        target_frame = frame
        if locator:
            target_locator = join_locator(frame.base, locator)
            identity = self._load(target_locator, context, pointer)
            target_frame = _Frame(identity, target_locator, context.documents[identity])

        key = (target_frame.identity, fragment)
        if key in context.active:
            cycle = context.active[context.active.index(key):] + [key]
            raise CircularReference(
                "circular reference: " + " -> ".join(context.describe(k) for k in cycle),
                [context.describe(k) for k in cycle],
                pointer,
            )

        try:
            target = resolve_pointer(target_frame.root, fragment)
        except LookupError as e:
            raise AnchorNotFound(
                f"$ref '{ref}' at {pointer or '/'}: anchor '#{fragment}' not found "
                f"in {context.describe((target_frame.identity, ''))} ({e})",
                [context.describe(k) for k in context.active],
                pointer,
            ) from None

        context.active.append(key)
        expanded = self._walk(target, target_frame, context, pointer)
        context.active.pop()

        if not siblings:
            return expanded
        if isinstance(expanded, dict):
            return {**expanded, **siblings}
        return {"allOf": [expanded], **siblings}

    def _load(self, locator: str, context: BundleContext, pointer: str) -> str:
        identity = self.fetcher.identity(locator)
        if identity not in context.documents:
            self.events.emit("bundle", f"fetching {locator}")
            try:
                context.documents[identity] = self.fetcher.fetch(locator)
            except SchemaNotFound as e:
                chain = [context.describe(k) for k in context.active] + [locator]
                raise RefNotFound(
                    f"$ref target not found at {pointer or '/'}: {locator} ({e})", chain, pointer
                ) from e
            context.labels[identity] = locator
        return identity


def bundle_refs(
    document: dict,
    base: str | None,
    fetcher: Fetcher,
    events: EventSink | None = None,
) -> dict:
    """Convenience wrapper around ``Bundler(fetcher, events).bundle``."""
    return Bundler(fetcher, events).bundle(document, base)
