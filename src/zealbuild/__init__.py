"""Zealbuild - include resolution and GNU toolchain pipeline for Zeal 8-bit assembly."""

__version__ = "0.1.0"
