"""Closet virtual try-on: sequential garment compositing with streamed progress."""

__version__ = "1.0.0"
