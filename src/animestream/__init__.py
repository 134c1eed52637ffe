"""animestream core package.

The package is organized into focused modules:

- **matcher**: Episode identity resolution and torrent-file disambiguation
- **providers**: Upstream clients (show search, id crosswalk, torrent feeds)
- **service**: Request orchestration over the matcher and providers
- **reference_data**: Bundled season offsets, pinned ids and alias tables
- **config**: YAML configuration with environment overrides

The main entry point for stream lookups is ``StreamService``.
"""

from .version import __version__

__all__ = ["__version__"]
