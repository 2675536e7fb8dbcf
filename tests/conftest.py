"""Shared fixtures: an on-disk script layout and an in-memory remote."""

import json
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import httpx
import pytest

from pyb6p.api import ScriptClient
from pyb6p.session import OrgCache, Session
from pyb6p.sync.integrity import local_hash
from pyb6p.sync.root import ScriptRoot
from pyb6p.utils import parse_http_date

ORGANIZATION = "U1001"
ORIGIN = "host.example.com"
WEBDAV_ID = "1466960"
BASE_URL = f"https://{ORIGIN}/files/{WEBDAV_ID}/"
BASE_PATH = f"/files/{WEBDAV_ID}/"
LAST_MODIFIED = "Wed, 15 Jan 2025 10:30:00 GMT"


class FakeRemote:
    """Document store behind ``httpx.MockTransport``, keyed by URL path."""

    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.etags: dict[str, Optional[str]] = {}
        self.statuses: dict[tuple[str, str], int] = {}
        self.last_modified: Optional[str] = LAST_MODIFIED
        self.requests: list[httpx.Request] = []

    def put_file(self, relative: str, data: bytes, etag: Optional[str] = None):
        path = BASE_PATH + relative
        self.files[path] = data
        if etag is not None:
            self.etags[path] = etag

    def methods(self, method: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method]

    def listing(self, prefix: str) -> httpx.Response:
        """Multistatus listing of ``prefix``, the files below it and their folders."""
        files = sorted(p for p in self.files if p.startswith(prefix))
        folders = {prefix}
        for path in files:
            parent = path.rsplit("/", 1)[0] + "/"
            while len(parent) > len(prefix):
                folders.add(parent)
                parent = parent[:-1].rsplit("/", 1)[0] + "/"

        def _response(href: str, resource_type: str) -> str:
            return (
                f"<D:response><D:href>{quote(href)}</D:href>"
                f"<D:propstat><D:prop><D:resourcetype>{resource_type}"
                "</D:resourcetype></D:prop>"
                "<D:status>HTTP/1.1 200 OK</D:status></D:propstat></D:response>"
            )

        body = "".join(_response(f, "<D:collection/>") for f in sorted(folders))
        body += "".join(_response(p, "") for p in files)
        xml = (
            '<?xml version="1.0" encoding="utf-8"?>'
            f'<D:multistatus xmlns:D="DAV:">{body}</D:multistatus>'
        )
        return httpx.Response(207, content=xml.encode())

    def delete(self, path: str) -> httpx.Response:
        if path.endswith("/"):
            doomed = [p for p in self.files if p.startswith(path)]
        else:
            doomed = [path] if path in self.files else []
        if not doomed:
            return httpx.Response(404)
        for p in doomed:
            self.files.pop(p)
            self.etags.pop(p, None)
        return httpx.Response(204)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        status = self.statuses.get((request.method, path))
        if status is not None:
            return httpx.Response(status)

        if request.method == "PUT":
            self.files[path] = request.content
            self.etags.pop(path, None)
            return httpx.Response(201)

        if request.method == "PROPFIND":
            return self.listing(path)
        if request.method == "DELETE":
            return self.delete(path)

        if path not in self.files:
            return httpx.Response(404)

        data = self.files[path]
        headers = {}
        etag = self.etags.get(path, f'"{local_hash(data)}"')
        if etag is not None:
            headers["ETag"] = etag
        if self.last_modified:
            headers["Last-Modified"] = self.last_modified

        if request.method == "HEAD":
            since = parse_http_date(request.headers.get("if-modified-since"))
            modified = parse_http_date(self.last_modified)
            if since and modified and modified <= since:
                return httpx.Response(304, headers=headers)
            return httpx.Response(200, headers=headers)
        return httpx.Response(200, content=data, headers=headers)


def write_script(base: Path, models: tuple = ()) -> Path:
    """Create a copacetic script folder under ``base`` and return its root."""
    root = base / "work" / ORGANIZATION / "MyScript"
    info = root / "draft" / "info"
    info.mkdir(parents=True)
    (info / "metadata.json").write_text("{}")
    (info / "permissions.json").write_text("{}")
    (info / "config.json").write_text(
        json.dumps({"models": [{"name": name} for name in models]})
    )
    objects = root / "draft" / "objects"
    objects.mkdir()
    (objects / "imports.ts").write_text("export {};\n")
    scripts = root / "draft" / "scripts"
    scripts.mkdir()
    (scripts / "a.ts").write_text("export const a = 1;\n")
    (root / "declarations").mkdir()
    return root


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def session(remote):
    """Session whose HTTP client talks to the fake remote."""
    http = httpx.Client(transport=httpx.MockTransport(remote.handler))
    client = ScriptClient(client=http, auth=("user", "secret"))
    yield Session(client=client, org_cache=OrgCache({ORGANIZATION: ORIGIN}))
    http.close()


@pytest.fixture
def script_path(temp_dir):
    return write_script(temp_dir)


@pytest.fixture
def root(script_path, session):
    return ScriptRoot(script_path, session, webdav_id=WEBDAV_ID)


@pytest.fixture
def base_url():
    return BASE_URL


@pytest.fixture
def webdav_id():
    return WEBDAV_ID


@pytest.fixture
def make_script(temp_dir):
    """Factory writing another script under the temporary directory."""

    def _make(name: str = "MyScript", models: tuple = ()) -> Path:
        return write_script(temp_dir / name, models=models)

    return _make
