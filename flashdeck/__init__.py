"""Flashdeck: spaced-repetition scheduling, deck hierarchy and .apkg interchange."""

__version__ = "0.1.0"
