"""pgtxn - typed result streams and pooled transactions for PostgreSQL."""

from pgtxn.__about__ import __version__

__all__ = ["__version__"]
