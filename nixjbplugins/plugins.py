"""The plugin database: marketplace lookups, hashing and the JSON files on disk."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import shutil
import xml.etree.ElementTree as ET
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import httpx

from .ides import IdeVersion
from .nixhash import nix32_to_base64
from .versioncmp import Version

log = logging.getLogger(__name__)

ALL_PLUGINS_JSON = "all_plugins.json"
IDES_DIR = "ides"
PREFIX_OF_ALL_URLS = "https://downloads.marketplace.jetbrains.com/"
DETAILS_URL = "https://plugins.jetbrains.com/plugins/list?pluginId={}"
DOWNLOAD_URL = "https://plugins.jetbrains.com/plugin/download?pluginId={}&version={}"

_SEPARATOR = "/--/"
_CLIENT_TIMEOUT = 600.0
_ATTEMPT_TIMEOUT = 1200.0
_CONCURRENCY = 16
_RETRY_BASE_MS = 250
_RETRIES = 3

_background: set[asyncio.Task[Any]] = set()


def plugin_version_key(name: str, version: str) -> str:
    """The key under which one version of a plugin is stored."""
    return f"{name}{_SEPARATOR}{version}"


@dataclass(frozen=True)
class PluginDbEntry:
    """Where a plugin file lives below the download prefix, and its SRI-style hash."""

    path: str
    hash: str

    def to_json(self) -> dict[str, str]:
        return {"p": self.path, "h": self.hash}

    @classmethod
    def from_json(cls, data: Any) -> PluginDbEntry:
        """Build from the {"p": ..., "h": ...} form; raise ValueError if malformed."""
        if not isinstance(data, dict):
            raise ValueError(f"plugin entry is not an object: {data!r}")
        try:
            path, hash_ = data["p"], data["h"]
        except KeyError as exc:
            raise ValueError(f"plugin entry lacks field {exc.args[0]!r}") from None
        if not isinstance(path, str) or not isinstance(hash_, str):
            raise ValueError(f"plugin entry fields must be strings: {data!r}")
        return cls(path=path, hash=hash_)


@dataclass(frozen=True)
class PluginDetailsVersion:
    """One plugin version as listed by the marketplace, with its build range."""

    version: str
    since_build: str | None = None
    until_build: str | None = None


@dataclass
class PluginDb:
    """All known plugin files, and for each IDE the plugin versions it uses."""

    all_plugins: dict[str, PluginDbEntry] = field(default_factory=dict)
    ides: dict[IdeVersion, dict[str, str]] = field(default_factory=dict)

    def insert(
        self, ide_version: IdeVersion, name: str, version: str, entry: PluginDbEntry
    ) -> None:
        """Record that an IDE uses this plugin version; an existing entry is kept."""
        mapping = self.ides.setdefault(ide_version, {})
        self.all_plugins.setdefault(plugin_version_key(name, version), entry)
        mapping[name] = version


def hacks_for_details_key(pluginkey: str) -> str | None:
    """The key to query plugin details with, or None for plugins known to be broken."""
    match pluginkey:
        case "23.bytecode-disassembler":
            return "bytecode-disassembler"
        case (
            "com.valord577.mybatis-navigator"
            | "io.github.kings1990.FastRequest"
            | "com.majera.intellij.codereview.gitlab"
        ):
            return None
        case _:
            return pluginkey


def _child_text(element: ET.Element, tag: str) -> str:
    child = element.find(tag)
    if child is None:
        raise ValueError(f"<{element.tag}> lacks <{tag}>")
    return (child.text or "").strip()


def parse_plugin_details(xml_text: str) -> list[PluginDetailsVersion] | None:
    """Parse a plugin list response; None if it has no category."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise ValueError(f"invalid plugin details XML: {exc}") from exc
    category = root.find("category")
    if category is None:
        return None
    versions = []
    for plugin in category.findall("idea-plugin"):
        idea_version = plugin.find("idea-version")
        if idea_version is None:
            raise ValueError("<idea-plugin> lacks <idea-version>")
        versions.append(
            PluginDetailsVersion(
                version=_child_text(plugin, "version"),
                since_build=idea_version.get("since-build"),
                until_build=idea_version.get("until-build"),
            )
        )
    return versions


def supported_version(
    ide: IdeVersion, versions: Iterable[PluginDetailsVersion]
) -> PluginDetailsVersion | None:
    """The first listed plugin version whose build range contains the IDE's build."""
    build = Version.parse(ide.build_number)
    for candidate in versions:
        if candidate.since_build is not None:
            if build < Version.parse(candidate.since_build.replace(".*", ".0")):
                continue
        if candidate.until_build is not None:
            if build > Version.parse(candidate.until_build.replace(".*", ".99999999")):
                continue
        return candidate
    return None


async def index(client: httpx.AsyncClient | None, url: str) -> list[str]:
    """Download a marketplace index: a JSON list of plugin ids."""
    if client is None:
        async with httpx.AsyncClient() as own_client:
            return await index(own_client, url)
    response = await client.get(url, follow_redirects=True)
    data = response.json()
    if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
        raise ValueError(f"plugin index at {url} is not a list of strings")
    return data


def _read_string_map(path: Path) -> dict[str, str]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict) or not all(
        isinstance(value, str) for value in data.values()
    ):
        raise ValueError(f"{path} is not an object of strings")
    return data


def db_load(out_dir: Path | str) -> PluginDb:
    """Load all_plugins.json only; an absent file gives an empty database."""
    file = Path(out_dir) / ALL_PLUGINS_JSON
    if not file.exists():
        return PluginDb()
    data = json.loads(file.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{file} is not a JSON object")
    return PluginDb(
        all_plugins={key: PluginDbEntry.from_json(value) for key, value in data.items()}
    )


def db_load_full(out_dir: Path | str) -> PluginDb:
    """Load the database and the IDE mappings; IDE build numbers stay empty."""
    out_dir = Path(out_dir)
    db = db_load(out_dir)
    for file in sorted((out_dir / IDES_DIR).iterdir()):
        ide_version = IdeVersion.from_json_filename(file.name)
        if ide_version is None:
            log.warning("Invalid JSON file in ide directory skipped: %s", file)
            continue
        db.ides[ide_version] = _read_string_map(file)
    return db


def _retry_delays() -> Iterator[float]:
    delay_ms = _RETRY_BASE_MS
    for _ in range(_RETRIES):
        yield delay_ms / 1000
        delay_ms *= _RETRY_BASE_MS


async def _process_with_retries(
    db: PluginDb,
    client: httpx.AsyncClient,
    ides: Sequence[IdeVersion],
    pluginkey: str,
    not_found: set[str],
) -> None:
    delays = _retry_delays()
    while True:
        try:
            async with asyncio.timeout(_ATTEMPT_TIMEOUT):
                await process_plugin(db, client, ides, pluginkey, not_found)
            return
        except TimeoutError as exc:
            log.warning("failed plugin processing %s due to timeout. Might retry.", pluginkey)
            error: Exception = RuntimeError(f"{pluginkey}: timeout")
            error.__cause__ = exc
        except Exception as exc:
            log.warning("failed plugin processing %s: %s. Might retry.", pluginkey, exc)
            error = exc
        delay = next(delays, None)
        if delay is None:
            raise error
        await asyncio.sleep(delay)


async def db_update(
    db: PluginDb, ides: Sequence[IdeVersion], pluginkeys: Iterable[str]
) -> None:
    """Resolve every plugin for every IDE, at most 16 at once; stop at the first failure."""
    not_found: set[str] = set()
    semaphore = asyncio.Semaphore(_CONCURRENCY)

    async with httpx.AsyncClient(timeout=_CLIENT_TIMEOUT) as client:

        async def run(pluginkey: str) -> None:
            async with semaphore:
                await _process_with_retries(db, client, ides, pluginkey, not_found)

        tasks = [asyncio.create_task(run(key)) for key in pluginkeys]
        try:
            for finished in asyncio.as_completed(tasks):
                await finished
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)


async def process_plugin(
    db: PluginDb,
    client: httpx.AsyncClient,
    ides: Sequence[IdeVersion],
    pluginkey: str,
    not_found: set[str],
) -> None:
    """Look up a plugin's versions and record the one that fits each IDE."""
    log.debug("Processing %s...", pluginkey)
    details_key = hacks_for_details_key(pluginkey)
    if details_key is None:
        log.warning("%s: plugin is marked as broken, skipping...", pluginkey)
        return

    response = await client.get(DETAILS_URL.format(details_key), follow_redirects=True)
    if not response.is_success:
        raise RuntimeError(
            f"{pluginkey} failed details request: {response.status_code}"
        )
    versions = parse_plugin_details(response.text)
    if versions is None:
        log.warning("%s: No plugin details available. Skipping!", pluginkey)
        return

    for ide in ides:
        chosen = supported_version(ide, versions)
        if chosen is None:
            log.debug("%s: IDE %s not supported.", pluginkey, ide)
            continue
        entry = await get_db_entry(client, pluginkey, chosen.version, db, not_found)
        if entry is not None:
            db.insert(ide, pluginkey, chosen.version, entry)


async def get_db_entry(
    client: httpx.AsyncClient,
    pluginkey: str,
    version: str,
    db: PluginDb,
    not_found: set[str],
) -> PluginDbEntry | None:
    """The stored entry for a plugin version, downloading it for its hash if new.

    Returns None when the download is not available (HTTP 404).
    """
    key = plugin_version_key(pluginkey, version)
    cached = db.all_plugins.get(key)
    if cached is not None:
        return cached
    if key in not_found:
        return None

    log.info("%s@%s: Plugin not yet cached, downloading for hash...", pluginkey, version)
    response = await client.head(
        DOWNLOAD_URL.format(pluginkey, version), follow_redirects=True
    )
    if response.status_code == httpx.codes.NOT_FOUND:
        log.warning("%s@%s: not available: skipping", pluginkey, version)
        not_found.add(key)
        return None
    if not response.is_success:
        raise RuntimeError(
            f"{pluginkey}@{version}: failed download HEAD request: {response.status_code}"
        )

    # The query only carries analytics parameters; the file is the same without it.
    url = urlunsplit(urlsplit(str(response.url))._replace(query=""))
    is_jar = url.endswith(".jar")
    name = "".join(
        char if char.isalnum() else "-" for char in f"{pluginkey}-{version}-source"
    )
    hash_nix32 = await get_nix32_hash(name, url, not is_jar, is_jar)
    try:
        hash_ = nix32_to_base64(hash_nix32)
    except ValueError as exc:
        raise RuntimeError(f"{pluginkey}@{version}: failed decoding nix hash") from exc

    if not url.startswith(PREFIX_OF_ALL_URLS):
        raise RuntimeError(f"{pluginkey}@{version}: unexpected download URL {url}")
    return PluginDbEntry(path=url[len(PREFIX_OF_ALL_URLS):], hash=hash_)


def _require_tool(name: str) -> str:
    path = shutil.which(name)
    if path is None:
        raise RuntimeError(f"{name} not in PATH")
    return path


async def get_nix32_hash(name: str, url: str, unpack: bool, executable: bool) -> str:
    """Fetch a URL into the nix store, return its nix base32 sha256 and drop the store path."""
    prefetch = _require_tool("nix-prefetch-url")
    args = ["--print-path", "--type", "sha256", "--name", name]
    if unpack:
        args.append("--unpack")
    if executable:
        args.append("--executable")
    args.append(url)

    process = await asyncio.create_subprocess_exec(
        prefetch, *args, stdout=asyncio.subprocess.PIPE
    )
    try:
        stdout, _ = await process.communicate()
    except asyncio.CancelledError:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        raise
    if process.returncode != 0:
        raise RuntimeError(f"nix-prefetch-url failed for {url}")

    out = stdout.decode("utf-8").strip()
    hash_text, sep, store_path = out.partition("\n")
    if not sep:
        raise RuntimeError(f"nix-prefetch-url generated invalid output to stdout: {out}")

    # The store path is not needed any more; free the disk space in the background.
    store = _require_tool("nix-store")
    deleter = await asyncio.create_subprocess_exec(
        store, "--delete", store_path, stdout=asyncio.subprocess.DEVNULL
    )
    task = asyncio.create_task(deleter.wait())
    _background.add(task)
    task.add_done_callback(_background.discard)
    return hash_text


def _pretty(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def db_save(output_folder: Path | str, db: PluginDb) -> None:
    """Write all_plugins.json and one mapping file per IDE into ides/."""
    output_folder = Path(output_folder)
    out_path = output_folder / ALL_PLUGINS_JSON
    log.debug("Generating %s...", out_path)
    all_plugins = {key: db.all_plugins[key].to_json() for key in sorted(db.all_plugins)}
    out_path.write_text(_pretty(all_plugins), encoding="utf-8")

    ides_folder = output_folder / IDES_DIR
    for ide, plugins in db.ides.items():
        out_path = ides_folder / ide.to_json_filename()
        log.debug("Generating %s...", out_path)
        mapping = {name: plugins[name] for name in sorted(plugins)}
        out_path.write_text(_pretty(mapping), encoding="utf-8")


def db_cleanup(db: PluginDb) -> None:
    """Drop every stored plugin version that no IDE mapping uses."""
    used = {
        plugin_version_key(name, version)
        for mapping in db.ides.values()
        for name, version in mapping.items()
    }
    db.all_plugins = {
        key: entry for key, entry in db.all_plugins.items() if key in used
    }