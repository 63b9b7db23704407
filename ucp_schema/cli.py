"""ucp-schema CLI: resolve, compose, validate, bundle and lint UCP schemas."""

import json
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from ucp_schema import __version__
from ucp_schema.config import Settings, load_settings
from ucp_schema.errors import ConfigError, UcpSchemaError
from ucp_schema.events import ConsoleEventSink, EventSink, NullEventSink
from ucp_schema.models.annotations import OPERATIONS

console = Console(highlight=False, soft_wrap=True)
err_console = Console(stderr=True, highlight=False, soft_wrap=True)


@click.group()
@click.version_option(version=__version__, prog_name="ucp-schema")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="YAML settings file (default: ./.ucp-schema.yaml when present)",
)
@click.pass_context
def main(ctx: click.Context, config_path: str | None):
    """ucp-schema — Universal Commerce Protocol schema tooling.

    Compose capability schemas, resolve request/response views for an
    operation, bundle references, validate payloads and lint schema files.
    """
    try:
        ctx.obj = load_settings(config_path)
    except ConfigError as e:
        raise click.UsageError(str(e)) from e


# ── Shared options ───────────────────────────────────────────────────


def schema_base_options(f):
    f = click.option(
        "--schema-remote-base",
        default=None,
        help="URL prefix stripped from schema URLs before mapping them under --schema-local-base",
    )(f)
    f = click.option(
        "--schema-local-base",
        type=click.Path(file_okay=False),
        default=None,
        help="Read capability schemas from this directory instead of fetching them",
    )(f)
    return f


def output_options(f):
    f = click.option("--verbose", "-v", is_flag=True, help="Print pipeline stages to stderr")(f)
    f = click.option("--pretty", is_flag=True, help="Indent JSON output")(f)
    f = click.option("--output", "-o", type=click.Path(dir_okay=False), default=None,
                     help="Write JSON to a file instead of stdout")(f)
    return f


def direction_options(f):
    f = click.option("--response", is_flag=True, help="Resolve the response view")(f)
    f = click.option("--request", is_flag=True, help="Resolve the request view")(f)
    return f


def operation_option(f):
    return click.option(
        "--op",
        required=True,
        type=click.Choice(OPERATIONS, case_sensitive=False),
        help="Operation to resolve for",
    )(f)


def strict_option(f):
    return click.option(
        "--strict/--no-strict",
        default=None,
        help="Reject unknown fields (additionalProperties: false on every object)",
    )(f)


# ── Helpers ──────────────────────────────────────────────────────────


def _settings(
    ctx: click.Context, schema_local_base: str | None, schema_remote_base: str | None
) -> Settings:
    settings: Settings = ctx.obj or Settings()
    if schema_remote_base and not (schema_local_base or settings.schema_local_base):
        raise click.UsageError("--schema-remote-base requires --schema-local-base")
    return settings.with_overrides(
        schema_local_base=schema_local_base, schema_remote_base=schema_remote_base
    )


def _events(verbose: bool) -> EventSink:
    if verbose:
        return ConsoleEventSink(err_console)
    return NullEventSink()


def _check_direction_flags(request: bool, response: bool) -> None:
    if request and response:
        raise click.UsageError("--request cannot be used with --response")


def _fail(error: UcpSchemaError, json_output: bool = False):
    """Report a pipeline error and exit with its status."""
    if json_output:
        payload = {"valid": False, "errors": [{"path": error.path, "message": error.message}]}
        click.echo(json.dumps(payload, separators=(",", ":")))
    else:
        err_console.print(f"Error: [{error.code}] {error.message}", markup=False)
    sys.exit(error.exit_code)


def _warn(diagnostics) -> None:
    for d in diagnostics:
        err_console.print(f"warning: [{d.code}] {d.path or '/'}: {d.message}", markup=False)


def _write_json(value, output: str | None, pretty: bool) -> None:
    if pretty:
        text = json.dumps(value, indent=2, ensure_ascii=False)
    else:
        text = json.dumps(value, separators=(",", ":"), ensure_ascii=False)

    if output is None:
        click.echo(text)
        return
    try:
        Path(output).write_text(text + "\n", encoding="utf-8")
    except OSError as e:
        err_console.print(f"Error: cannot write {output}: {e}", markup=False)
        sys.exit(3)


# ── Resolve ──────────────────────────────────────────────────────────


@main.command()
@click.argument("source")
@operation_option
@direction_options
@click.option("--bundle", is_flag=True, help="Inline $ref targets first (schema input only)")
@strict_option
@schema_base_options
@output_options
@click.pass_context
def resolve(
    ctx: click.Context,
    source: str,
    op: str,
    request: bool,
    response: bool,
    bundle: bool,
    strict: bool | None,
    schema_local_base: str | None,
    schema_remote_base: str | None,
    output: str | None,
    pretty: bool,
    verbose: bool,
):
    """Resolve a schema into the view for one direction and operation.

    SOURCE is a schema file or URL, or a self-describing payload: a payload
    is composed from its capabilities first and implies its direction.
    """
    from ucp_schema.pipeline.detector import direction_from_flags, infer_direction
    from ucp_schema.pipeline.runner import Pipeline

    _check_direction_flags(request, response)
    settings = _settings(ctx, schema_local_base, schema_remote_base)

    with Pipeline(settings, _events(verbose)) as pipeline:
        try:
            document = pipeline.load(source)
            if infer_direction(document) is not None:
                if bundle:
                    raise click.UsageError(
                        "--bundle does not apply to payload input (schemas are auto-composed "
                        "from capabilities). Remove --bundle, or pass a schema file instead."
                    )
            elif schema_local_base or schema_remote_base:
                raise click.UsageError(
                    "--schema-local-base/--schema-remote-base only apply to payload input. "
                    "Remove these flags, or pass a self-describing payload instead."
                )
            resolution = pipeline.resolve_document(
                document,
                source,
                op,
                direction=direction_from_flags(request, response),
                bundle=bundle,
                strict=strict,
            )
        except UcpSchemaError as e:
            _fail(e)

    _warn(resolution.warnings)
    _write_json(resolution.schema, output, pretty)


# ── Compose ──────────────────────────────────────────────────────────


@main.command()
@click.argument("payload")
@schema_base_options
@output_options
@click.pass_context
def compose(
    ctx: click.Context,
    payload: str,
    schema_local_base: str | None,
    schema_remote_base: str | None,
    output: str | None,
    pretty: bool,
    verbose: bool,
):
    """Compose the schema a self-describing payload declares.

    Annotations are kept; no direction or operation is applied.
    """
    from ucp_schema.pipeline.runner import Pipeline

    settings = _settings(ctx, schema_local_base, schema_remote_base)
    events = _events(verbose)

    with Pipeline(settings, events) as pipeline:
        try:
            document = pipeline.load(payload)
            events.emit("compose", "composing schemas (annotations preserved)")
            schema = pipeline.compose_document(document)
        except UcpSchemaError as e:
            _fail(e)

    _write_json(schema, output, pretty)


# ── Validate ─────────────────────────────────────────────────────────


@main.command()
@click.argument("payload")
@operation_option
@click.option("--schema", "schema_source", default=None, help="Validate against this schema file or URL")
@click.option("--profile", default=None, help="Agent profile URL (REST request bodies)")
@direction_options
@schema_base_options
@click.option("--json", "json_output", is_flag=True, help="Print the result as JSON")
@strict_option
@click.option("--verbose", "-v", is_flag=True, help="Print pipeline stages to stderr")
@click.pass_context
def validate(
    ctx: click.Context,
    payload: str,
    op: str,
    schema_source: str | None,
    profile: str | None,
    request: bool,
    response: bool,
    schema_local_base: str | None,
    schema_remote_base: str | None,
    json_output: bool,
    strict: bool | None,
    verbose: bool,
):
    """Validate a payload against its resolved schema.

    The schema comes from --schema, from --profile, from the payload's
    meta.profile (JSONRPC request) or from its ucp.capabilities (response).
    """
    from ucp_schema.pipeline.runner import Pipeline

    _check_direction_flags(request, response)
    if schema_source and profile:
        raise click.UsageError("--profile cannot be used with --schema")
    if schema_source and (schema_local_base or schema_remote_base):
        raise click.UsageError(
            "--schema-local-base/--schema-remote-base cannot be used with --schema "
            "(composition is bypassed). Remove these flags, or remove --schema."
        )
    settings = _settings(ctx, schema_local_base, schema_remote_base)

    with Pipeline(settings, _events(verbose)) as pipeline:
        try:
            document = pipeline.load(payload, "payload ")
            run = pipeline.validate_payload(
                document,
                op,
                schema=schema_source,
                profile=profile,
                request=request,
                response=response,
                strict=strict,
            )
        except UcpSchemaError as e:
            _fail(e, json_output)

    _warn(run.resolution.warnings)
    if json_output:
        click.echo(json.dumps(run.outcome.to_dict(), separators=(",", ":")))
    elif run.valid:
        click.echo("Valid")
    else:
        err_console.print("Validation failed:")
        for error in run.outcome.errors:
            err_console.print(f"  {error}", markup=False)

    if not run.valid:
        sys.exit(1)


# ── Bundle ───────────────────────────────────────────────────────────


@main.command()
@click.argument("schema")
@schema_base_options
@output_options
@click.pass_context
def bundle(
    ctx: click.Context,
    schema: str,
    schema_local_base: str | None,
    schema_remote_base: str | None,
    output: str | None,
    pretty: bool,
    verbose: bool,
):
    """Inline every $ref in SCHEMA (except "#") without resolving annotations."""
    from ucp_schema.pipeline.runner import Pipeline

    settings = _settings(ctx, schema_local_base, schema_remote_base)

    with Pipeline(settings, _events(verbose)) as pipeline:
        try:
            bundled = pipeline.bundle_source(schema)
        except UcpSchemaError as e:
            _fail(e)

    _write_json(bundled, output, pretty)


# ── Lint ─────────────────────────────────────────────────────────────

STATUS_ICONS = {
    "ok": "[green]v[/]",
    "warning": "[yellow]![/]",
    "error": "[red]x[/]",
}


@main.command(name="lint")
@click.argument("path")
@click.option("--format", "fmt", default="text", type=click.Choice(["text", "json"]))
@click.option("--strict", is_flag=True, help="Treat warnings as errors")
@click.option("--quiet", "-q", is_flag=True, help="Only show files with errors")
@click.pass_context
def lint_command(ctx: click.Context, path: str, fmt: str, strict: bool, quiet: bool):
    """Lint schema files: references, annotations, allOf types, $id.

    PATH is a schema file or a directory searched recursively for *.json.
    """
    from ucp_schema.lint.linter import lint

    target = Path(path)
    if not target.exists():
        err_console.print(f"Error: path not found: {path}", markup=False)
        sys.exit(2)

    settings: Settings = ctx.obj or Settings()
    report = lint(target, strict=strict, max_workers=settings.max_workers)

    if fmt == "json":
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        if not quiet:
            console.print(f"Linting {escape(path)} ...\n")

        for result in report.results:
            status = result.status.value
            if not quiet or status != "ok":
                console.print(f"  {STATUS_ICONS[status]} {escape(result.file)}")
            for d in result.diagnostics:
                if quiet and d.severity.value != "error":
                    continue
                color = "red" if d.severity.value == "error" else "yellow"
                console.print(
                    f"    [{color}]{d.severity.value}[/]\\[{d.code}]: "
                    f"{escape(d.path or '/')} - {escape(d.message)}"
                )

        console.print()
        if report.ok:
            console.print(f"[green]v {report.summary()}[/]")
        else:
            console.print(f"[red]x {report.summary()}[/]")

    if not report.ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
