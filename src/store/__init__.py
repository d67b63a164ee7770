"""Storage and versioning layer.

This package encodes snapshots as Parquet, stores them as blobs, and
tracks the commit graph of each project in a relational index.
"""
