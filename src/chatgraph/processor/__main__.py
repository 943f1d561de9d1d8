"""CLI entry point for the processing pipeline.

Allows running the pipeline as a module:
    python -m chatgraph.processor process conversations.json -o graph.json
    python -m chatgraph.processor demo
"""

import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path

import click

from chatgraph.config import Config, load_config
from chatgraph.demo import generate_demo_export
from chatgraph.errors import ChatGraphError
from chatgraph.logging import setup_logging
from chatgraph.models import (
    CLUSTERING_ALGORITHMS,
    COLOR_SCHEMES,
    NODE_SIZE_MODES,
    ProcessingProgress,
    ProcessingResult,
)
from chatgraph.processor.service import ProcessingService


def print_progress(progress: ProcessingProgress) -> None:
    """Print a progress update to stderr."""
    line = f"[{progress.stage:>10}] {progress.progress:5.1f}% {progress.message}"
    if progress.error:
        line += f" ({progress.error})"
    click.echo(line, err=True)


def apply_overrides(
    config: Config,
    demo: bool,
    threshold: float | None,
    clustering: str | None,
    node_size: str | None,
    color_scheme: str | None,
) -> Config:
    """Return a copy of config with command-line overrides applied."""
    changes = {
        "similarity_threshold": threshold,
        "clustering_algorithm": clustering,
        "node_size": node_size,
        "color_scheme": color_scheme,
    }
    changes = {key: value for key, value in changes.items() if value is not None}
    return dataclasses.replace(
        config,
        demo_mode=config.demo_mode or demo,
        visualization=dataclasses.replace(config.visualization, **changes),
    )


async def run_pipeline(service: ProcessingService, source: Path | bytes) -> ProcessingResult:
    try:
        return await service.process_file(source, print_progress)
    finally:
        await service.aclose()


def run_and_write(config: Config, source: Path | bytes, output: Path | None) -> None:
    """Process an export and write the graph JSON to output (or stdout)."""
    try:
        service = ProcessingService(config)
        result = asyncio.run(run_pipeline(service, source))
    except (ChatGraphError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    stats = service.stats(result.graph)
    click.echo(
        f"Conversations: {stats.total_conversations} | Connections: {stats.total_connections} | "
        f"Clusters: {stats.total_clusters} (avg size {stats.average_cluster_size}, "
        f"largest {stats.largest_cluster})",
        err=True,
    )
    click.echo(
        f"Messages: {stats.total_messages} (avg {stats.average_messages_per_conversation}) | "
        f"Words: {stats.total_words} (avg {stats.average_words_per_conversation})",
        err=True,
    )
    if stats.top_topics:
        topics = ", ".join(f"{topic} ({count})" for topic, count in stats.top_topics)
        click.echo(f"Top topics: {topics}", err=True)
    for cluster in result.graph.clusters:
        click.echo(f"  {cluster.id}: {cluster.name} [{cluster.size}]", err=True)

    document = json.dumps(result.graph.to_dict(), indent=2)
    if output is None:
        click.echo(document)
    else:
        output.write_text(document + "\n", encoding="utf-8")
        click.echo(f"Graph written to {output}", err=True)


threshold_option = click.option(
    "--threshold", "-t", type=click.FloatRange(0.1, 1.0), help="Similarity threshold for edges"
)
clustering_option = click.option(
    "--clustering", type=click.Choice(CLUSTERING_ALGORITHMS), help="Clustering algorithm"
)
node_size_option = click.option(
    "--node-size", type=click.Choice(NODE_SIZE_MODES), help="Node sizing mode"
)
color_scheme_option = click.option(
    "--color-scheme", type=click.Choice(COLOR_SCHEMES), help="Node coloring scheme"
)
output_option = click.option(
    "--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write graph JSON here"
)


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to config.yaml",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Build a similarity graph from a chat export."""
    config = load_config(config_path)
    setup_logging(
        "chatgraph",
        log_dir=config.logging.log_dir,
        level=logging.DEBUG if verbose else config.logging.level,
    )
    ctx.obj = config


@cli.command()
@click.argument("export_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--demo", is_flag=True, help="Use offline embeddings instead of the remote API")
@threshold_option
@clustering_option
@node_size_option
@color_scheme_option
@output_option
@click.pass_obj
def process(
    config: Config,
    export_file: Path,
    demo: bool,
    threshold: float | None,
    clustering: str | None,
    node_size: str | None,
    color_scheme: str | None,
    output: Path | None,
) -> None:
    """Process a ChatGPT conversations.json export."""
    config = apply_overrides(config, demo, threshold, clustering, node_size, color_scheme)
    run_and_write(config, export_file, output)


@cli.command()
@threshold_option
@clustering_option
@node_size_option
@color_scheme_option
@output_option
@click.pass_obj
def demo(
    config: Config,
    threshold: float | None,
    clustering: str | None,
    node_size: str | None,
    color_scheme: str | None,
    output: Path | None,
) -> None:
    """Run the pipeline over the built-in demo conversations."""
    config = apply_overrides(config, True, threshold, clustering, node_size, color_scheme)
    data = json.dumps(generate_demo_export()).encode("utf-8")
    run_and_write(config, data, output)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
