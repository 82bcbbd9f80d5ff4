"""
Configuration handling for the add-on manager.

This package is responsible for:
* Determining the configuration directory (via env var + sensible default).
* Loading and persisting settings.json, merging in defaults for new fields.
"""
