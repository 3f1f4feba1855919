"""Release Catalog

Release publication, artist association sync and read-through caching for a
music catalog of artists, releases and tracks.
"""

__version__ = "0.1.0"
