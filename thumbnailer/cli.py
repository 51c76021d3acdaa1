"""CLI commands for thumbnailer."""

from __future__ import annotations

import logging

import click
from rich.console import Console
from rich.table import Table

from thumbnailer.config import Configuration
from thumbnailer.models.format import get_format_registry
from thumbnailer.pipeline.cache import VariantCache
from thumbnailer.plugins import PluginHost
from thumbnailer.resources import ThumbnailResource

console = Console()


def _format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024  # type: ignore[assignment]
    return f"{size:.1f} TB"


def get_host() -> PluginHost:
    host = PluginHost([ThumbnailResource])
    host.discover()
    return host


@click.group()
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False),
              help="YAML configuration file")
@click.option("--log-level", default="INFO",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Logging level")
def main(config_path: str | None, log_level: str) -> None:
    """thumbnailer - Square thumbnail endpoint."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if config_path:
        Configuration.set_application(Configuration.from_yaml(config_path))


@main.command()
@click.option("--host", default="127.0.0.1", help="Host to bind")
@click.option("--port", "-p", default=8182, help="Port to bind")
def serve(host: str, port: int) -> None:
    """Start the HTTP server."""
    import uvicorn

    from thumbnailer.api import create_app
    from thumbnailer.pipeline.services import get_default_services

    plugin_host = get_host()
    plugin_host.services = get_default_services()
    app = create_app(plugin_host)

    console.print(f"[green]Starting server at http://{host}:{port}/thumbs[/green]")
    uvicorn.run(app, host=host, port=port)


@main.command()
def formats() -> None:
    """List known image formats."""
    table = Table(title="Formats")
    table.add_column("Key", style="cyan")
    table.add_column("Name")
    table.add_column("Media type", style="green")
    table.add_column("Extensions")
    table.add_column("Encodable", justify="center")

    for fmt in get_format_registry().all_formats():
        table.add_row(
            fmt.key,
            fmt.name,
            fmt.preferred_media_type,
            ", ".join(fmt.extensions),
            "yes" if fmt.pil_format else "no",
        )

    console.print(table)


@main.command()
def plugins() -> None:
    """List loaded plugins and their configuration keys."""
    host = get_host()
    unset = host.unset_config_keys()

    table = Table(title="Plugins")
    table.add_column("Plugin", style="cyan")
    table.add_column("Config key")
    table.add_column("Value", style="green")

    for name, keys in sorted(host.plugin_config_keys().items()):
        if not keys:
            table.add_row(name, "[dim]-[/dim]", "")
        for key in sorted(keys):
            if key in unset:
                table.add_row(name, key, "[dim](unset)[/dim]")
            else:
                table.add_row(name, key, host.config.get_string(key) or "")

    console.print(table)
    if unset:
        console.print(f"\n[yellow]{len(unset)} key(s) unset, defaults apply[/yellow]")


@main.group()
def cache() -> None:
    """Manage the variant cache."""
    pass


def _get_cache() -> VariantCache | None:
    variant_cache = VariantCache.from_config(Configuration.for_application())
    if variant_cache is None:
        console.print("[yellow]Variant cache is disabled (variant_cache.enabled).[/yellow]")
    return variant_cache


@cache.command("stats")
def cache_stats() -> None:
    """Show variant cache statistics."""
    variant_cache = _get_cache()
    if variant_cache is None:
        return

    stats = variant_cache.get_stats()
    variant_cache.close()

    table = Table(title="Variant Cache")
    table.add_column("Format", style="cyan")
    table.add_column("Variants", justify="right", style="green")
    for format_key, count in sorted(stats.formats.items()):
        table.add_row(format_key, str(count))
    table.add_row("[bold]Total[/bold]", f"[bold]{stats.total_count}[/bold]")
    console.print(table)

    console.print(
        f"\n[dim]{stats.identifiers} image(s), {_format_bytes(stats.total_size_bytes)}[/dim]"
    )


@cache.command("clear")
@click.option("--identifier", "-i", default=None, help="Only evict variants of this image")
@click.option("--expired", is_flag=True, help="Only purge expired variants")
def cache_clear(identifier: str | None, expired: bool) -> None:
    """Remove variants from the cache."""
    variant_cache = _get_cache()
    if variant_cache is None:
        return

    if identifier:
        removed = variant_cache.evict_identifier(identifier)
    elif expired:
        removed = variant_cache.purge_expired()
    else:
        removed = variant_cache.clear()
    variant_cache.close()

    console.print(f"[green]Removed {removed} variant(s)[/green]")


if __name__ == "__main__":
    main()
