"""Build a Nix-friendly database of JetBrains IDE plugins and their hashes."""

__version__ = "0.3.0"