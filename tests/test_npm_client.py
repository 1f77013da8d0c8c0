"""Tests for the npm registry client."""
from unittest.mock import patch

import httpx
import pytest

from aierastack.npm.client import (
    NpmClient,
    candidate_names,
    is_transient,
    normalize_repository_url,
    types_package_name,
)
from aierastack.signals import RepoIdentity, TypesTier

WIDGET = RepoIdentity(owner="acme", name="widget")


@pytest.fixture(autouse=True)
def mock_sleep():
    with patch("common.retry.time.sleep") as mock:
        yield mock


def package_doc(name, repository="git+https://github.com/acme/widget.git", **latest):
    return {
        "name": name,
        "description": "Widgets for everyone",
        "dist-tags": {"latest": "2.1.0"},
        "versions": {"2.1.0": latest},
        "repository": {"type": "git", "url": repository},
    }


def make_client(packages=None, downloads=None, existing=()):
    """NpmClient backed by an in-memory registry."""
    packages = packages or {}
    downloads = downloads or {}
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        path = request.url.raw_path.decode()
        if request.url.host == "api.npmjs.org":
            name = path.split("/last-week/", 1)[1].replace("%2F", "/")
            if name in downloads:
                return httpx.Response(200, json={"downloads": downloads[name], "package": name})
            return httpx.Response(404, json={"error": "package not found"})
        name = path.lstrip("/").replace("%2F", "/")
        if request.method == "HEAD":
            return httpx.Response(200 if name in existing else 404)
        if name in packages:
            return httpx.Response(200, json=packages[name])
        return httpx.Response(404, json={"error": "Not found"})

    client = NpmClient(http_client=httpx.Client(transport=httpx.MockTransport(handler)))
    return client, requests


@pytest.mark.parametrize("repository,expected", [
    ("git+https://github.com/acme/widget.git", "https://github.com/acme/widget"),
    ({"type": "git", "url": "git://github.com/acme/widget.git"}, "https://github.com/acme/widget"),
    ("https://github.com/acme/widget", "https://github.com/acme/widget"),
    ({"type": "git"}, None),
    (None, None),
    (42, None),
])
def test_normalize_repository_url(repository, expected):
    assert normalize_repository_url(repository) == expected


def test_types_package_name():
    assert types_package_name("react") == "@types/react"
    assert types_package_name("@acme/widget") == "@types/acme__widget"


def test_candidate_names_put_preferred_first_without_duplicates():
    identity = RepoIdentity(owner="Acme", name="Widget")
    assert candidate_names(identity, preferred="acme-widget") == [
        "acme-widget", "Widget", "@Acme/Widget", "widget", "@acme/widget",
    ]
    assert candidate_names(WIDGET) == ["widget", "@acme/widget"]


def test_fetch_package_with_bundled_types():
    client, _ = make_client(
        packages={"widget": package_doc("widget", types="dist/index.d.ts")},
        downloads={"widget": 250000},
    )
    package = client.fetch_package("widget")

    assert package.name == "widget"
    assert package.version == "2.1.0"
    assert package.description == "Widgets for everyone"
    assert package.weekly_downloads == 250000
    assert package.types is TypesTier.BUNDLED
    assert package.repository == "https://github.com/acme/widget"


def test_fetch_package_with_external_types():
    client, requests = make_client(
        packages={"widget": package_doc("widget")},
        existing={"@types/widget"},
    )
    package = client.fetch_package("widget")

    assert package.types is TypesTier.EXTERNAL
    assert package.weekly_downloads == 0
    assert any(r.method == "HEAD" for r in requests)


def test_fetch_package_without_types():
    client, _ = make_client(packages={"widget": package_doc("widget")})
    assert client.fetch_package("widget").types is TypesTier.NONE


def test_fetch_unknown_package():
    client, _ = make_client()
    assert client.fetch_package("nope") is None


def test_find_package_requires_repository_match():
    client, _ = make_client(packages={
        "widget": package_doc("widget", repository="https://github.com/someone-else/widget"),
        "@acme/widget": package_doc("@acme/widget"),
    })
    package = client.find_package_for_repo(WIDGET)
    assert package.name == "@acme/widget"


def test_find_package_tries_preferred_name_first():
    client, requests = make_client(packages={
        "acme-widget": package_doc("acme-widget", typings="index.d.ts"),
        "widget": package_doc("widget"),
    })
    package = client.find_package_for_repo(WIDGET, preferred="acme-widget")

    assert package.name == "acme-widget"
    assert requests[0].url.path == "/acme-widget"


def test_find_package_returns_none_without_match():
    client, _ = make_client(packages={
        "widget": package_doc("widget", repository="https://github.com/other/thing"),
    })
    assert client.find_package_for_repo(WIDGET) is None


def test_transport_errors_are_treated_as_missing():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = NpmClient(http_client=httpx.Client(transport=httpx.MockTransport(handler)))
    assert client.fetch_package("widget") is None
    assert client.find_package_for_repo(WIDGET) is None


def test_invalid_json_is_treated_as_missing():
    client = NpmClient(http_client=httpx.Client(
        transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>oops</html>"))))
    assert client.fetch_package("widget") is None


def test_rate_limited_request_is_retried(mock_sleep):
    calls = []

    def handler(request):
        calls.append(request.url.path)
        if request.url.path == "/widget" and calls.count("/widget") == 1:
            return httpx.Response(429, headers={"Retry-After": "1"})
        if request.url.path == "/widget":
            return httpx.Response(200, json=package_doc("widget", types="index.d.ts"))
        return httpx.Response(404)

    client = NpmClient(http_client=httpx.Client(transport=httpx.MockTransport(handler)))
    package = client.fetch_package("widget")

    assert package is not None
    assert package.name == "widget"
    assert calls.count("/widget") == 2
    mock_sleep.assert_called_once_with(1.0)


def test_server_errors_give_up_after_retry_budget(mock_sleep):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503)

    client = NpmClient(http_client=httpx.Client(transport=httpx.MockTransport(handler)), max_retries=2)
    assert client.fetch_package("widget") is None
    assert len(calls) == 3
    assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]


def test_not_found_is_not_retried(mock_sleep):
    client, requests = make_client()
    assert client.fetch_package("nope") is None
    assert len(requests) == 1
    mock_sleep.assert_not_called()


def test_is_transient():
    request = httpx.Request("GET", "https://registry.npmjs.org/widget")

    def status_error(code):
        return httpx.HTTPStatusError("failed", request=request, response=httpx.Response(code, request=request))

    assert is_transient(status_error(429))
    assert is_transient(status_error(502))
    assert is_transient(httpx.ReadTimeout("timed out", request=request))
    assert not is_transient(status_error(404))
    assert not is_transient(ValueError("not JSON"))


def test_from_config_passes_retry_budget():
    class Settings:
        http_timeout = 5
        max_retries = 1

    client = NpmClient.from_config(Settings())
    try:
        assert client.max_retries == 1
    finally:
        client.close()
