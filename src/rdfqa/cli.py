"""Command line interface for :mod:`rdfqa`."""

import json
import logging
import time
from typing import Any, Optional

import click

from .client import GraphStoreClient, Transport
from .config import Config, config_from_yaml
from .errors import RdfQaError
from .evaluation import answers_equal, extract_clean_answers, select_comparison_mode

__all__ = [
    "main",
]

DIAGNOSTIC_QUERY = (
    "PREFIX fb: <http://rdf.freebase.com/ns/> "
    "PREFIX rdf: <http://www.w3.org/1999/02/22-rdf-syntax-ns#> "
    "SELECT DISTINCT ?rel1 ?rel2 FROM <http://rdf.freebase.com> WHERE { "
    "fb:m.017nt ?rel1 ?m . ?m fb:type.object.type ?z . "
    "?z fb:freebase.type_hints.mediator true . ?m ?rel2 fb:m.04sv4 . }"
)


@click.group()
@click.version_option(package_name="rdfqa")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML file with client options",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_file: Optional[str]) -> None:
    """rdfqa - cached, time-bounded queries against a graph store.

    Options not given on the command line come from the YAML config file,
    then from RDFQA_* environment variables.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            force=True,
        )
        logging.getLogger("rdfqa").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s", force=True)

    try:
        ctx.obj["config"] = config_from_yaml(config_file) if config_file else Config
    except RdfQaError as e:
        click.echo(f"Error: {e}", err=True)
        raise click.Abort()


def _build_client(ctx: click.Context, **overrides: Any) -> GraphStoreClient:
    """Client from the active config, with non-empty CLI values taking precedence."""
    values = {key.upper(): value for key, value in overrides.items() if value is not None}
    config = type("CliConfig", (ctx.obj["config"],), values)
    return GraphStoreClient.from_config(config)


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


@main.command()
@click.option("--http-url", help="HTTP SPARQL endpoint")
@click.option("--query-endpoint", help="SPARQL endpoint for the direct connection")
@click.option("--timeout-ms", type=int, default=10, show_default=True, help="Per-query deadline")
@click.option("--query", "query_text", default=DIAGNOSTIC_QUERY, help="Query to issue")
@click.pass_context
def smoke(
    ctx: click.Context,
    http_url: Optional[str],
    query_endpoint: Optional[str],
    timeout_ms: int,
    query_text: str,
) -> None:
    """Smoke-test connectivity and timing through every configured transport.

    Issues the diagnostic query as rows and as aggregated values, plus a
    trailing-space variant that is cached separately.

    Example:
      rdfqa smoke --http-url http://localhost:8890/sparql --timeout-ms 10
    """
    try:
        client = _build_client(
            ctx, http_url=http_url, query_endpoint=query_endpoint, timeout_ms=timeout_ms
        )
    except RdfQaError as e:
        click.echo(f"Error: {e}", err=True)
        raise click.Abort()

    with client:
        started = time.monotonic()
        for transport in client.transports:
            click.echo(f"\n[{transport.value}]")
            # Transports share the cache; start each one cold.
            client.cache.clear()
            result = client.execute(query_text, transport)
            click.echo(f"  outcome: {result.outcome.value} ({result.duration_ms} ms)")
            click.echo(f"  rows: {result.rows}")
            click.echo(f"  aggregated: {client.run(query_text, transport)}")
            click.echo(f"  rows (trailing space): {client.run_solutions(query_text + ' ', transport)}")
        elapsed_ms = int((time.monotonic() - started) * 1000)
    click.echo(f"\nElapsed: {elapsed_ms} ms")


@main.command()
@click.argument("query_text")
@click.option(
    "--transport",
    type=click.Choice([t.value for t in Transport]),
    help="Transport to use (default: direct if configured, else http)",
)
@click.option("--http-url", help="HTTP SPARQL endpoint")
@click.option("--query-endpoint", help="SPARQL endpoint for the direct connection")
@click.option("--timeout-ms", type=int, help="Per-query deadline")
@click.option("--aggregate", is_flag=True, help="Print per-variable value sets")
@click.pass_context
def query(
    ctx: click.Context,
    query_text: str,
    transport: Optional[str],
    http_url: Optional[str],
    query_endpoint: Optional[str],
    timeout_ms: Optional[int],
    aggregate: bool,
) -> None:
    """Run one query and print the result as JSON."""
    try:
        with _build_client(
            ctx, http_url=http_url, query_endpoint=query_endpoint, timeout_ms=timeout_ms
        ) as client:
            if aggregate:
                click.echo(_dump(client.run(query_text, transport)))
                return
            result = client.execute(query_text, transport)
    except RdfQaError as e:
        click.echo(f"Error: {e}", err=True)
        raise click.Abort()

    if not result.ok:
        click.echo(f"Query {result.outcome.value}: {result.error}", err=True)
    click.echo(_dump(result.rows))


@main.command()
@click.argument("gold_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("pred_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def compare(ctx: click.Context, gold_file: str, pred_file: str) -> None:
    """Compare predicted answers against gold answers.

    Both files hold a JSON object mapping variable names to lists of values.
    Exits with status 0 when the answers match and 1 otherwise.

    Example:
      rdfqa compare gold.json predicted.json
    """
    with open(gold_file, encoding="utf-8") as f:
        gold = json.load(f)
    with open(pred_file, encoding="utf-8") as f:
        pred = json.load(f)

    try:
        mode, _ = select_comparison_mode(gold)
        gold_answers, pred_answers = extract_clean_answers(gold, pred)
        equal = answers_equal(gold, pred)
    except RdfQaError as e:
        click.echo(f"Error: {e}", err=True)
        raise click.Abort()

    click.echo(f"Mode: {mode.value}")
    click.echo(f"Gold: {_dump(gold_answers)}")
    click.echo(f"Predicted: {_dump(pred_answers)}")
    click.echo(f"Equal: {equal}")
    ctx.exit(0 if equal else 1)


if __name__ == "__main__":
    main()
