"""Data models used throughout the scan and export pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .config import PNG_SCALES


class AssetSource(str, Enum):
    """How a discovered SVG was embedded in the page."""

    INLINE = "inline"
    RASTER_REFERENCE = "raster-reference"
    STYLE_REFERENCE = "style-reference"
    SPRITE = "sprite"
    FAVICON = "favicon"
    NESTED_SHADOW_TREE = "nested-shadow-tree"
    EMBEDDED_OBJECT = "embedded-object"
    NESTED_TEMPLATE = "nested-template"
    NESTED_NOSCRIPT = "nested-noscript"
    DECLARATIVE_DATA_ATTRIBUTE = "declarative-data-attribute"
    DECLARATIVE_JSON = "declarative-json"
    NETWORK_FALLBACK = "network-fallback"


@dataclass(frozen=True)
class Dimensions:
    """Width and height in SVG user units."""

    width: float
    height: float


@dataclass(frozen=True)
class DiscoveredAsset:
    """A normalized SVG found during one scan."""

    id: str
    content: str
    source: AssetSource
    dimensions: Dimensions
    file_size: int
    source_url: Optional[str] = None
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "content": self.content,
            "source": self.source.value,
            "dimensions": {
                "width": self.dimensions.width,
                "height": self.dimensions.height,
            },
            "fileSize": self.file_size,
        }
        if self.source_url is not None:
            data["sourceUrl"] = self.source_url
        if self.name is not None:
            data["name"] = self.name
        return data


@dataclass(frozen=True)
class ScanProgress:
    """Progress event emitted before each detector and once at the end."""

    phase: str
    found: int
    total: Optional[int] = None


@dataclass(frozen=True)
class RenderRequest:
    """Parameters for rasterizing one asset."""

    content: str
    scale: int = 2
    background_color: Optional[str] = None

    def __post_init__(self) -> None:
        if self.scale not in PNG_SCALES:
            raise ValueError(
                f"Unsupported scale {self.scale!r}; expected one of {PNG_SCALES}"
            )


@dataclass
class ArchiveSpec:
    """Assets to package into one ZIP archive."""

    items: List[DiscoveredAsset]
    include_raster: bool = False
    scale: int = 2
    page_title: Optional[str] = None


@dataclass(frozen=True)
class NetworkResource:
    """An SVG response observed while the page was loading."""

    url: str
    content: str


@dataclass(frozen=True)
class CapturedStylesheet:
    """Rules of one applied stylesheet; relative URLs resolve against ``href``."""

    css: str
    href: Optional[str] = None


@dataclass
class PageSnapshot:
    """Rendered page state handed to the detectors."""

    html: str
    url: str
    title: Optional[str] = None
    stylesheets: List[CapturedStylesheet] = field(default_factory=list)
    network_resources: List[NetworkResource] = field(default_factory=list)
    closed_shadow_roots_exposed: bool = False


@dataclass(frozen=True)
class FetchResult:
    """Response of the privileged fetch relay."""

    content: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.content is not None


@dataclass(frozen=True)
class ExportResult:
    """Binary payload ready to be saved, or the reason it could not be built."""

    payload: Optional[bytes] = None
    filename: Optional[str] = None
    mime_type: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.payload is not None
