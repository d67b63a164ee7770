"""Local table ingestion.

This package reads CSV files into snapshots and writes snapshots back
out for the CLI and SDK.
"""
