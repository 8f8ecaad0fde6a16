"""DocSense: local document indexing and ranked search."""

__version__ = "0.3.0"
