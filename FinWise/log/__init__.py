"""
Logging subsystem for FinWise.

Modules:

- :mod:`FinWise.log.log` – Root logger setup, Qt message bridge and the in-memory log tank.
"""
