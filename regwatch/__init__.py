"""Regwatch - regulatory alert ingestion pipeline."""

__version__ = "0.1.0"
