"""npm registry client."""
from typing import List, Optional
from urllib.parse import quote

import httpx

from aierastack.signals import PackageInfo, RepoIdentity, TypesTier
from common.logging import LoggingManager
from common.retry import DEFAULT_MAX_RETRIES, retry_on_failure

logger = LoggingManager.get_logger('app.npm_client')

NPM_REGISTRY = "https://registry.npmjs.org"
NPM_DOWNLOADS = "https://api.npmjs.org/downloads/point/last-week"


def _quote_name(name: str) -> str:
    # Scoped names keep the '@' but the slash must be encoded for the registry
    return quote(name, safe="@")


def normalize_repository_url(repository) -> Optional[str]:
    """Registry ``repository`` field (string or {url}) as a plain https URL."""
    if not repository:
        return None
    if isinstance(repository, dict):
        url = repository.get("url")
        if not isinstance(url, str):
            return None
    elif isinstance(repository, str):
        url = repository
    else:
        return None
    if url.startswith("git+"):
        url = url[len("git+"):]
    if url.endswith(".git"):
        url = url[:-len(".git")]
    if url.startswith("git://"):
        url = "https://" + url[len("git://"):]
    return url


def types_package_name(name: str) -> str:
    """DefinitelyTyped package for ``name``: react -> @types/react, @a/b -> @types/a__b."""
    return "@types/" + name.lstrip("@").replace("/", "__")


def candidate_names(identity: RepoIdentity, preferred: Optional[str] = None) -> List[str]:
    candidates = [
        identity.name,
        f"@{identity.owner}/{identity.name}",
        identity.name.lower(),
        f"@{identity.owner.lower()}/{identity.name.lower()}",
    ]
    if preferred:
        candidates.insert(0, preferred)
    unique = []
    for candidate in candidates:
        if candidate not in unique:
            unique.append(candidate)
    return unique


def is_transient(error: Exception) -> bool:
    """Rate limiting (429), 5xx responses and transport failures are worth another attempt."""
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status == 429 or status >= 500
    return isinstance(error, httpx.TransportError)


def references_repo(repository_url: Optional[str], identity: RepoIdentity) -> bool:
    return bool(repository_url) and identity.full_name.lower() in repository_url.lower()


class NpmClient:
    """Reads package metadata and weekly downloads from the public npm registry.

    Transient failures are retried; whatever still fails is reported as
    "no package", since npm data is a secondary signal.
    """

    def __init__(self, timeout: float = 10, http_client: Optional[httpx.Client] = None,
                 max_retries: int = DEFAULT_MAX_RETRIES):
        self.max_retries = max_retries
        self.http = http_client or httpx.Client(timeout=timeout, follow_redirects=True,
                                                headers={"Accept": "application/json"})

    @classmethod
    def from_config(cls, config) -> "NpmClient":
        return cls(timeout=config.http_timeout, max_retries=config.max_retries)

    def close(self) -> None:
        self.http.close()

    @retry_on_failure(retryable=is_transient)
    def _request(self, method: str, url: str) -> httpx.Response:
        response = self.http.request(method, url)
        if response.status_code == 429 or response.status_code >= 500:
            response.raise_for_status()
        return response

    def _get_json(self, url: str) -> Optional[dict]:
        try:
            response = self._request("GET", url)
        except httpx.HTTPError as e:
            logger.warning(f"npm request to {url} failed: {e}")
            return None
        if response.status_code != 200:
            logger.debug(f"npm request to {url} returned {response.status_code}")
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.warning(f"npm response from {url} is not JSON: {e}")
            return None

    def _weekly_downloads(self, name: str) -> int:
        data = self._get_json(f"{NPM_DOWNLOADS}/{_quote_name(name)}")
        if not data:
            return 0
        downloads = data.get("downloads") or 0
        return downloads if isinstance(downloads, int) else 0

    def _types_tier(self, name: str, version_data: dict) -> TypesTier:
        if version_data.get("types") or version_data.get("typings"):
            return TypesTier.BUNDLED
        if not name.startswith("@types/") and self._package_exists(types_package_name(name)):
            return TypesTier.EXTERNAL
        return TypesTier.NONE

    def _package_exists(self, name: str) -> bool:
        try:
            response = self._request("HEAD", f"{NPM_REGISTRY}/{_quote_name(name)}")
        except httpx.HTTPError as e:
            logger.debug(f"npm existence check for {name} failed: {e}")
            return False
        return response.status_code == 200

    def fetch_package(self, name: str) -> Optional[PackageInfo]:
        """Package metadata for ``name``, or None when it is unknown or unreachable."""
        data = self._get_json(f"{NPM_REGISTRY}/{_quote_name(name)}")
        if not data:
            return None

        latest = (data.get("dist-tags") or {}).get("latest")
        version_data = {}
        if latest:
            version_data = (data.get("versions") or {}).get(latest) or {}
        package = PackageInfo(
            name=data.get("name") or name,
            version=latest,
            description=data.get("description") or "",
            weekly_downloads=self._weekly_downloads(name),
            types=self._types_tier(name, version_data),
            repository=normalize_repository_url(data.get("repository")),
        )
        logger.debug(f"npm package {name}: {package.weekly_downloads} weekly downloads, types {package.types.value}")
        return package

    def find_package_for_repo(self, identity: RepoIdentity,
                              preferred: Optional[str] = None) -> Optional[PackageInfo]:
        """First candidate package whose repository URL points back at ``identity``."""
        for candidate in candidate_names(identity, preferred):
            package = self.fetch_package(candidate)
            if package is not None and references_repo(package.repository, identity):
                logger.info(f"Matched {identity.full_name} to npm package {candidate}")
                return package
        logger.debug(f"No npm package found for {identity.full_name}")
        return None

