"""Packaged JSON tables: unit catalog and device presets."""
