"""
Data package: typed records exchanged with the remote service.

- :mod:`FinWise.data.model` – Identity, Transaction, Goal, Summary and the combined dashboard Snapshot.
"""
