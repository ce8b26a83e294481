"""Detect a workspace's technology stack and generate tooling artifacts for it."""

__version__ = "0.1.0"
