"""
Core package for FinWise providing the session and data-synchronization model.

This package includes:

- :mod:`FinWise.core.service` – Remote Data Gateway over the HTTP API and the asynchronous worker helpers.
- :mod:`FinWise.core.session` – Session Store: credential persistence, identity resolution and cancellation.
- :mod:`FinWise.core.auth` – Login/register form controller feeding the Session Store.
- :mod:`FinWise.core.sync` – Dashboard Synchronizer: combined, consistent summary/transactions/goals refresh.
- :mod:`FinWise.core.mutations` – Transaction and goal submitters that refresh the dashboard on success.
- :mod:`FinWise.core.client` – Wires the components together for one client instance.
"""
