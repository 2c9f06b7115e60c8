"""Kotha-Boli: a local workbench for writing Bengali fiction."""

__version__ = "0.1.0"
