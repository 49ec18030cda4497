"""
Settings package: client configuration and durable local storage.

This package provides:

- :mod:`FinWise.settings.lib` – Config paths, ``client.json`` schema validation and the
  ``QSettings``-backed local storage for the credential and theme preference.
"""
