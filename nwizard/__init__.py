"""Interactive terminal installer driven by a TOML menu."""

from nwizard.__version__ import __version__

__all__ = ["__version__"]
