"""Extraction strategies, one per way an SVG can be embedded in a page."""

from .base import DetectionContext, Detector
from .css import CssDetector
from .declarative import DataAttributeDetector, JsonScriptDetector
from .favicon import FaviconDetector
from .img import ImageDetector
from .inline import InlineDetector
from .nested import NoscriptDetector, ShadowDomDetector, TemplateDetector
from .network import NetworkDetector
from .object_embed import ObjectEmbedDetector
from .sprite import SpriteDetector

__all__ = [
    "CssDetector",
    "DataAttributeDetector",
    "DetectionContext",
    "Detector",
    "FaviconDetector",
    "ImageDetector",
    "InlineDetector",
    "JsonScriptDetector",
    "NetworkDetector",
    "NoscriptDetector",
    "ObjectEmbedDetector",
    "ShadowDomDetector",
    "SpriteDetector",
    "TemplateDetector",
]
