"""Editor-side client for the Amber language server."""

__version__ = "0.1.0"
