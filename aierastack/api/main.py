"""Main FastAPI application."""
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from aierastack import __version__
from aierastack.badge import error_badge, score_badge
from aierastack.cache import RepoCache
from aierastack.config import Config
from aierastack.curated import CuratedCatalog, load_catalog
from aierastack.errors import StoreError
from aierastack.fetcher import RepoFetcher
from aierastack.github.client import GitHubClient
from aierastack.npm.client import NpmClient
from aierastack.records import IndexEntry
from aierastack.registry import ModelRegistry, load_registry
from aierastack.signals import RepoIdentity
from aierastack.store import RepoStore
from common.logging import LoggingManager

logger = LoggingManager.get_logger('app.api')

CACHEABLE = {"Cache-Control": "public, max-age=3600"}
NOT_CACHEABLE = {"Cache-Control": "no-store"}


@lru_cache()
def get_settings() -> Config:
    return Config()


@lru_cache()
def get_registry() -> ModelRegistry:
    return load_registry(get_settings())


@lru_cache()
def get_catalog() -> CuratedCatalog:
    return load_catalog(get_settings())


@lru_cache()
def get_store() -> RepoStore:
    return RepoStore.from_config(get_settings())


@lru_cache()
def get_github_client() -> GitHubClient:
    return GitHubClient.from_config(get_settings())


@lru_cache()
def get_repo_cache() -> RepoCache:
    settings = get_settings()
    fetcher = RepoFetcher(
        github=get_github_client(),
        npm=NpmClient.from_config(settings),
        registry=get_registry(),
        curated=get_catalog(),
    )
    return RepoCache(get_store(), fetcher, max_age=settings.cache_max_age)


@asynccontextmanager
async def lifespan(app: FastAPI):
    LoggingManager.from_config(get_settings())
    logger.info("AI Era Stack API starting")
    yield
    # Only close what a request actually built
    if get_repo_cache.cache_info().currsize:
        get_repo_cache().close()
    logger.info("AI Era Stack API stopped")


# Initialize FastAPI app
app = FastAPI(
    title="AI Era Stack API",
    description="Scores GitHub repositories on how well AI coding models know them",
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=NOT_CACHEABLE)


def _identity(owner: Optional[str], name: Optional[str]) -> Optional[RepoIdentity]:
    owner, name = (owner or "").strip(), (name or "").strip()
    if not owner or not name:
        return None
    try:
        return RepoIdentity(owner=owner, name=name)
    except ValidationError:
        return None


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "AI Era Stack API",
        "version": __version__,
        "endpoints": {
            "repo": "/api/repo?owner={owner}&name={name}",
            "repos": "/api/repos",
            "evaluations": "/api/evaluations?repos={owner/name,...}",
            "badge": "/badge/{owner}/{name}.svg",
            "health": "/health"
        }
    }


@app.get("/health")
def health_check(store: RepoStore = Depends(get_store),
                 github: GitHubClient = Depends(get_github_client)):
    """Health check endpoint."""
    database_ok = store.ping()
    try:
        rate_limit = github.get_rate_limit()
        github_status = {
            "remaining": rate_limit["remaining"],
            "limit": rate_limit["limit"],
            "reset_time": rate_limit["reset_time"].isoformat(),
        }
    except Exception as e:
        logger.warning(f"Could not read GitHub rate limit: {e}")
        github_status = {"error": str(e)}

    return {
        "status": "healthy" if database_ok else "unhealthy",
        "database": "connected" if database_ok else "unavailable",
        "github": github_status,
    }


@app.get("/api/repo")
def get_repo(background_tasks: BackgroundTasks,
             owner: Optional[str] = None,
             name: Optional[str] = None,
             cache: RepoCache = Depends(get_repo_cache),
             catalog: CuratedCatalog = Depends(get_catalog)):
    """Full scored record for one repository, fetched on first request."""
    identity = _identity(owner, name)
    if identity is None:
        return _error(400, "Missing owner or name")
    identity = catalog.canonical(identity)

    try:
        record = cache.get_or_refresh(identity, schedule=background_tasks.add_task)
    except StoreError as e:
        logger.error(f"Store failure serving {identity.full_name}: {e}")
        return _error(500, "Failed to load repository data")

    if record is None:
        return _error(500, f"Failed to fetch repository data for {identity.full_name}")
    return JSONResponse(content=record.model_dump(mode="json"), headers=CACHEABLE)


@app.get("/api/repos", response_model=List[IndexEntry])
def list_repos(category: Optional[str] = None,
               featured: Optional[bool] = None,
               store: RepoStore = Depends(get_store)):
    """Summaries of every stored repository, best score first."""
    try:
        return store.list_summaries(category=category, featured=featured)
    except StoreError as e:
        logger.error(f"Could not list repositories: {e}")
        return _error(500, "Failed to list repositories")


@app.get("/api/evaluations")
def get_evaluation(repos: Optional[str] = Query(None, description="Comma separated owner/name slugs"),
                   category: Optional[str] = None,
                   store: RepoStore = Depends(get_store)):
    """Stored comparison evaluation for a set of repositories or a category."""
    slugs = [slug.strip() for slug in (repos or "").split(",") if slug.strip()]
    if not slugs and not category:
        return _error(400, "Missing repos or category")

    try:
        if slugs:
            evaluation = store.get_evaluation(slugs)
        else:
            evaluation = store.get_evaluation_by_category(category)
    except StoreError as e:
        logger.error(f"Could not read evaluation: {e}")
        return _error(500, "Failed to load evaluation")

    if evaluation is None:
        return _error(404, "Evaluation not found")
    return evaluation


@app.get("/badge/{owner}/{name}")
def get_badge(owner: str,
              name: str,
              background_tasks: BackgroundTasks,
              llm: Optional[str] = None,
              cache: RepoCache = Depends(get_repo_cache),
              catalog: CuratedCatalog = Depends(get_catalog),
              settings: Config = Depends(get_settings)):
    """SVG grade badge. Always answers 200 with an image, even on failure."""
    if name.endswith(".svg"):
        name = name[:-len(".svg")]
    model_id = llm or settings.default_model_id

    identity = _identity(owner, name)
    if identity is None:
        svg = error_badge()
    else:
        try:
            record = cache.get_or_refresh(catalog.canonical(identity), schedule=background_tasks.add_task)
            svg = score_badge(record, model_id)
        except Exception as e:
            logger.error(f"Badge generation error for {identity.full_name}: {e}")
            svg = error_badge()

    return Response(content=svg, media_type="image/svg+xml", headers=CACHEABLE)
