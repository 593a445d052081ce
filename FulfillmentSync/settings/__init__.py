"""
Settings package: configuration API and schema validation.

This package provides:

- :mod:`FulfillmentSync.settings.lib` – Loading, validating and saving ``sync.json``.
"""
