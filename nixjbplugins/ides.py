"""JetBrains IDE products and the released versions that are processed."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from enum import Enum

import httpx

log = logging.getLogger(__name__)

JETBRAINS_VERSIONS = "https://www.jetbrains.com/updates/updates.xml"

PROCESSED_VERSION_PREFIXES = ("2027.", "2026.", "2025.", "2024.3.")

_RELEASE_CHANNEL_SUFFIX = "RELEASE-licensing-RELEASE"


class IdeProduct(Enum):
    """An IDE product, carrying its product code and its nix key."""

    INTELLIJ_ULTIMATE = ("IU", "idea-ultimate")
    INTELLIJ_COMMUNITY = ("IC", "idea-community")
    PHPSTORM = ("PS", "phpstorm")
    WEBSTORM = ("WS", "webstorm")
    PYCHARM_PROFESSIONAL = ("PY", "pycharm-professional")
    PYCHARM_COMMUNITY = ("PC", "pycharm-community")
    RUBYMINE = ("RM", "ruby-mine")
    CLION = ("CL", "clion")
    GOLAND = ("GO", "goland")
    DATAGRIP = ("DB", "datagrip")
    DATASPELL = ("DS", "dataspell")
    RIDER = ("RD", "rider")
    ANDROID_STUDIO = ("AI", "android-studio")
    RUSTROVER = ("RR", "rust-rover")
    AQUA = ("QA", "aqua")
    WRITERSIDE = ("WRS", "writerside")
    MPS = ("MPS", "mps")

    def __init__(self, code: str, key: str) -> None:
        self._product_code = code
        self._nix_key = key

    @classmethod
    def from_code(cls, code: str) -> IdeProduct | None:
        """Return the product with this JetBrains product code, or None."""
        return next((p for p in cls if p._product_code == code), None)

    @classmethod
    def from_nix_key(cls, key: str) -> IdeProduct | None:
        """Return the product with this nix key, or None."""
        return next((p for p in cls if p._nix_key == key), None)

    def product_code(self) -> str:
        return self._product_code

    def nix_key(self) -> str:
        return self._nix_key


@dataclass(frozen=True)
class IdeVersion:
    """One released version of an IDE."""

    ide: IdeProduct
    version: str
    build_number: str = ""

    @classmethod
    def from_json_filename(cls, filename: str) -> IdeVersion | None:
        """Build from a mapping file name; the build number is left empty."""
        if not filename.endswith(".json"):
            return None
        stem = filename[: -len(".json")]
        product, sep, version = stem.rpartition("-")
        if not sep:
            return None
        ide = IdeProduct.from_nix_key(product)
        if ide is None:
            return None
        return cls(ide=ide, version=version, build_number="")

    def to_json_filename(self) -> str:
        return f"{self.ide.nix_key()}-{self.version}.json"


def allowed_build_version(version: str) -> bool:
    """Whether an IDE version is recent enough to be processed."""
    return version.startswith(PROCESSED_VERSION_PREFIXES)


def _attribute(element: ET.Element, name: str) -> str:
    try:
        return element.attrib[name]
    except KeyError:
        raise ValueError(f"<{element.tag}> lacks attribute {name!r}") from None


def parse_updates(xml_text: str) -> list[IdeVersion]:
    """Extract the processed release versions from the JetBrains updates XML."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise ValueError(f"invalid updates XML: {exc}") from exc

    seen: set[IdeProduct] = set()
    versions: list[IdeVersion] = []

    for product in root.findall("product"):
        channels = product.findall("channel")
        for code_element in product.findall("code"):
            ide = IdeProduct.from_code((code_element.text or "").strip())
            if ide is None or ide in seen:
                continue
            seen.add(ide)
            for channel in channels:
                if not _attribute(channel, "id").endswith(_RELEASE_CHANNEL_SUFFIX):
                    continue
                for build in channel.findall("build"):
                    number = _attribute(build, "number")
                    version = _attribute(build, "version")
                    if allowed_build_version(version):
                        versions.append(IdeVersion(ide, version, number))
                    else:
                        log.warning("Ignoring %s %s: too old", ide.nix_key(), version)
    return versions


async def collect_ids(client: httpx.AsyncClient | None = None) -> list[IdeVersion]:
    """Download the JetBrains updates feed and return the processed IDE versions."""
    if client is None:
        async with httpx.AsyncClient() as own_client:
            return await collect_ids(own_client)
    response = await client.get(JETBRAINS_VERSIONS, follow_redirects=True)
    response.raise_for_status()
    return parse_updates(response.text)