"""
Configuration and data-directory access for the mirror.

This package is responsible for:
* Determining the data directory (via env var + sensible default).
* Loading the mirror configuration from JSON or YAML.
"""
