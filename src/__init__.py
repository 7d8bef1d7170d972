"""factlens - multi-stage content verification pipeline."""

from factlens.version import __version__

__all__ = ["__version__"]
