"""CLI commands for fetching products."""

import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from typing import Any

import click
import structlog

from product_fetch import __version__
from product_fetch.fetch.client import TransportClient
from product_fetch.fetch.config import TransportConfig
from product_fetch.fetch.metrics import TransportMetrics
from product_fetch.lifecycle.boundary import RenderBoundary
from product_fetch.lifecycle.coordinator import ProductCoordinator
from product_fetch.lifecycle.models import CoordinatorConfig, ViewState
from product_fetch.observability.logging import (
    bind_subject_context,
    clear_subject_context,
    configure_logging,
    parse_log_level,
)
from product_fetch.products.errors import ClassifiedError
from product_fetch.products.models import (
    CollectionOptions,
    FetchOptions,
    NotModified,
)
from product_fetch.products.service import ProductService
from product_fetch.settings.app import get_settings


logger = structlog.get_logger()


@dataclass
class CliContext:
    """Options shared by every command."""

    transport_config: TransportConfig


def _echo_json(payload: Any, err: bool = False) -> None:
    click.echo(json.dumps(payload, indent=2, default=str), err=err)


def _fail(error: ClassifiedError) -> None:
    _echo_json({"error": error.to_dict()}, err=True)
    sys.exit(1)


def _parse_filters(values: tuple[str, ...]) -> dict[str, str]:
    filters: dict[str, str] = {}
    for value in values:
        key, sep, item = value.partition("=")
        if not sep or not key:
            msg = f"Filters must look like key=value, got '{value}'"
            raise click.BadParameter(msg, param_hint="--filter")
        filters[key] = item
    return filters


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--base-url",
    default=None,
    help="Product API base URL (default: $PRODUCT_API_BASE_URL).",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=None,
    help="Use JSON format for logs (default: $PRODUCT_API_JSON_LOGS).",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    base_url: str | None,
    json_logs: bool | None,
    verbose: bool,
) -> None:
    """Product fetch CLI."""
    settings = get_settings()
    try:
        level = logging.DEBUG if verbose else parse_log_level(settings.log_level)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="PRODUCT_API_LOG_LEVEL") from e

    configure_logging(
        level=level,
        json_format=settings.json_logs if json_logs is None else json_logs,
    )
    config = settings.transport_config()
    if base_url:
        config = TransportConfig(base_url=base_url)
    ctx.obj = CliContext(transport_config=config)


@cli.command()
@click.argument("product_id")
@click.option("--etag", default=None, help="ETag from a previous response.")
@click.option(
    "--last-modified",
    default=None,
    help="Last-Modified value from a previous response.",
)
@click.option("--no-cache", is_flag=True, help="Omit the Cache-Control directive.")
@click.option(
    "--retries",
    type=click.IntRange(0, 10),
    default=2,
    show_default=True,
    help="Attempts after the first one for retryable failures.",
)
@click.pass_obj
def get(
    obj: CliContext,
    product_id: str,
    etag: str | None,
    last_modified: str | None,
    no_cache: bool,
    retries: int,
) -> None:
    """Fetch one product and print it as JSON."""
    options = FetchOptions(
        etag=etag,
        last_modified=last_modified,
        cache=not no_cache,
        retries=retries,
    )

    async def _run() -> dict[str, Any]:
        async with TransportClient(obj.transport_config) as transport:
            result = await ProductService(transport).fetch_by_id(product_id, options)
        if isinstance(result, NotModified):
            return result.model_dump()
        return result.to_dict()

    bind_subject_context(product_id)
    try:
        _echo_json(asyncio.run(_run()))
    except ClassifiedError as e:
        _fail(e)
    finally:
        clear_subject_context()


@cli.command("list")
@click.option(
    "--filter",
    "filters",
    multiple=True,
    help="Query filter as key=value; may be repeated.",
)
@click.option(
    "--allow-empty/--no-allow-empty",
    default=True,
    help="Accept an empty listing (default: true).",
)
@click.pass_obj
def list_products(
    obj: CliContext,
    filters: tuple[str, ...],
    allow_empty: bool,
) -> None:
    """Fetch a product listing and print records and per-item errors."""
    query = _parse_filters(filters)

    async def _run() -> dict[str, Any]:
        async with TransportClient(obj.transport_config) as transport:
            result = await ProductService(transport).fetch_collection(
                query, CollectionOptions(allow_empty=allow_empty)
            )
        return {
            "records": result.records,
            "item_errors": [item.to_dict() for item in result.item_errors],
            "metadata": result.metadata.model_dump(mode="json"),
        }

    try:
        _echo_json(asyncio.run(_run()))
    except ClassifiedError as e:
        _fail(e)


@cli.command()
@click.argument("product_id")
@click.option(
    "--cache-timeout-ms",
    type=click.IntRange(min=0),
    default=None,
    help="Soft cache lifetime before revalidation (default: 300000).",
)
@click.option(
    "--duration",
    type=click.FloatRange(min=0),
    default=10.0,
    show_default=True,
    help="Seconds to keep watching before exiting.",
)
@click.pass_obj
def watch(
    obj: CliContext,
    product_id: str,
    cache_timeout_ms: int | None,
    duration: float,
) -> None:
    """Keep a product loaded and print every state change as a JSON line."""

    def _print_view(view: ViewState) -> None:
        click.echo(json.dumps(view.model_dump(mode="json"), default=str))

    boundary = RenderBoundary(_print_view, fallback=None)

    async def _run() -> None:
        async with TransportClient(obj.transport_config) as transport:
            service = ProductService(transport)
            async with ProductCoordinator(
                service, listener=boundary, config=CoordinatorConfig()
            ) as coordinator:
                coordinator.load_subject(product_id, cache_timeout_ms=cache_timeout_ms)
                await asyncio.sleep(duration)

    bind_subject_context(product_id)
    try:
        asyncio.run(_run())
    finally:
        clear_subject_context()
        logger.info(
            "watch_finished",
            component="cli",
            render_failures=boundary.failures,
            transport=TransportMetrics.get_instance().to_dict(),
        )
