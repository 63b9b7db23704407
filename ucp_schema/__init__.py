"""UCP schema tooling.

Resolves Universal Commerce Protocol annotated schemas into standard JSON
Schema views, composes capability extensions, bundles references, validates
payloads, and lints schema sources.
"""

__version__ = "0.3.0"

ANNOTATION_KEYS = ("ucp_request", "ucp_response")
