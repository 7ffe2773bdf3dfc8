"""Find, normalize and export the SVG graphics used by a web page."""

__version__ = "0.1.0"
