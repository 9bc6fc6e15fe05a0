"""View objects, in-memory view caches, informers, error reporting and controller specifications."""

__version__ = "0.1.0"

__all__ = [
    "api",
    "buildinfo",
    "composite_cache",
    "delta",
    "fake_cache",
    "informer",
    "objects",
    "status",
    "store",
    "view_cache",
]