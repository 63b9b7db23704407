"""Schema sources: where documents come from.

- Locator: map a schema URL onto a local mirror directory
- Pointer: ``$ref`` splitting, locator joining and JSON pointer lookup
- Fetcher: read a local path or URL into a parsed document
"""
