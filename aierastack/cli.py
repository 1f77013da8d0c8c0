import sys
import time
from typing import Optional

import click
import uvicorn

from aierastack.cache import RepoCache
from aierastack.config import Config
from aierastack.curated import load_catalog
from aierastack.errors import AiEraStackError, ConfigError, RepositoryNotFoundError, UpstreamError
from aierastack.fetcher import RepoFetcher
from aierastack.github.client import GitHubClient
from aierastack.npm.client import NpmClient
from aierastack.records import CachedRepoData, Dimension
from aierastack.registry import load_registry
from aierastack.scoring import best_model
from aierastack.signals import RepoIdentity
from aierastack.store import RepoStore
from common.logging import LoggingManager

logger = LoggingManager.get_logger('app.cli')


def build_cache(config: Config) -> RepoCache:
    """Wire store, collectors, registry and catalog into a RepoCache."""
    catalog = load_catalog(config)
    fetcher = RepoFetcher(
        github=GitHubClient.from_config(config),
        npm=NpmClient.from_config(config),
        registry=load_registry(config),
        curated=catalog,
    )
    return RepoCache(RepoStore.from_config(config), fetcher, max_age=config.cache_max_age)


def parse_slug(slug: str) -> RepoIdentity:
    try:
        return RepoIdentity.parse(slug)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="SLUG")


def echo_record(record: CachedRepoData, model_id: Optional[str]) -> None:
    click.echo(f"{record.full_name}  [{record.category}]{'  featured' if record.featured else ''}")
    click.echo(f"Fetched at {record.fetched_at.isoformat()}")
    for scored_model, score in record.scores.items():
        marker = "*" if scored_model == model_id else " "
        click.echo(f" {marker} {scored_model:<20} {score.grade}  {score.overall:>3}")

    score = record.scores.get(model_id) if model_id else None
    if score is not None:
        click.echo(f"\nDimensions for {model_id}:")
        for dimension in Dimension:
            result = score.dimension(dimension)
            weight = result.details.get("applied_weight")
            click.echo(f"  {dimension.value:<18} {result.score:>3}  (weight {weight})")


@click.group()
@click.pass_context
def cli(ctx):
    """AI Era Stack: score GitHub repositories for AI coding models."""
    try:
        config = Config()
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(2)
    LoggingManager.from_config(config)
    ctx.obj = config


@cli.command('show')
@click.argument('slug')
@click.option('--llm', default=None, help='Model to break down (defaults to DEFAULT_MODEL_ID)')
@click.pass_obj
def show(config: Config, slug: str, llm: Optional[str]) -> None:
    """Show the scores for OWNER/NAME, fetching it if it is not stored yet."""
    identity = parse_slug(slug)
    cache = build_cache(config)
    try:
        record = cache.get_or_refresh(identity)
    except AiEraStackError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        cache.close()
    if record is None:
        click.echo(f"Repository {identity.full_name} not found or could not be fetched.", err=True)
        sys.exit(1)
    echo_record(record, llm or config.default_model_id)


@cli.command('fetch')
@click.argument('slug')
@click.pass_obj
def fetch(config: Config, slug: str) -> None:
    """Fetch and store OWNER/NAME now, regardless of cache age."""
    identity = parse_slug(slug)
    cache = build_cache(config)
    try:
        record = cache.refresh(identity)
    except RepositoryNotFoundError:
        click.echo(f"Repository {identity.full_name} not found.", err=True)
        sys.exit(1)
    except AiEraStackError as e:
        click.echo(f"Error fetching {identity.full_name}: {e}", err=True)
        sys.exit(1)
    finally:
        cache.close()
    echo_record(record, config.default_model_id)


@cli.command('update-all')
@click.option('--delay', type=float, default=1.0, show_default=True,
              help='Seconds to wait between repositories')
@click.pass_obj
def update_all(config: Config, delay: float) -> None:
    """Refresh every repository in the curated catalog."""
    cache = build_cache(config)
    identities = cache.fetcher.curated.identities()
    click.echo(f"Updating {len(identities)} curated repositories...")

    failures = []
    try:
        for index, identity in enumerate(identities, start=1):
            click.echo(f"[{index}/{len(identities)}] {identity.full_name}")
            try:
                record = cache.refresh(identity)
                best = record.scores[best_model(record.scores)]
                click.echo(f"  best {best.grade} {best.overall}")
            except (RepositoryNotFoundError, UpstreamError) as e:
                logger.error(f"Failed to update {identity.full_name}: {e}")
                click.echo(f"  failed: {e}", err=True)
                failures.append(identity.full_name)
            if delay > 0 and index < len(identities):
                time.sleep(delay)
    finally:
        cache.close()

    click.echo(f"Done: {len(identities) - len(failures)} updated, {len(failures)} failed.")
    if failures:
        sys.exit(1)


@cli.command('list')
@click.option('--category', default=None, help='Only repositories in this category')
@click.option('--featured', is_flag=True, default=False, help='Only featured repositories')
@click.pass_obj
def list_repos(config: Config, category: Optional[str], featured: bool) -> None:
    """List stored repositories, best score first."""
    entries = RepoStore.from_config(config).list_summaries(category=category, featured=True if featured else None)
    if not entries:
        click.echo("No repositories stored.")
        return
    for entry in entries:
        click.echo(f"{entry.best_grade} {entry.best_score:>3}  {entry.full_name:<40} {entry.category:<18} {entry.stars}")


@cli.command('serve')
@click.option('--host', default='127.0.0.1', show_default=True)
@click.option('--port', type=int, default=8000, show_default=True)
def serve(host: str, port: int) -> None:
    """Run the HTTP API."""
    uvicorn.run("aierastack.api.main:app", host=host, port=port)


main = cli

if __name__ == '__main__':
    cli()
