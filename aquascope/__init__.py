"""Ownership and borrowing visualizations for Rust code: an mdBook preprocessor and an HTTP server."""

__version__ = "0.1.0"

__all__ = [
    "annotations",
    "block",
    "cache",
    "container",
    "permissions",
    "preprocessor",
    "server",
    "workspace",
]