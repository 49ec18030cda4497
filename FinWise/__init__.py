"""
FinWise: client for tracking personal income, expenses and savings goals.

This package provides:

- :mod:`FinWise.core` – Session store, remote data gateway, dashboard synchronizer and mutation submitters.
- :mod:`FinWise.data` – Typed records for identities, transactions, goals and summaries.
- :mod:`FinWise.settings` – Client configuration and durable local storage.
- :mod:`FinWise.status` – Status codes and the client's exception taxonomy.
- :mod:`FinWise.log` – Logging setup with an in-memory log tank.
- :mod:`FinWise.ui` – Application-wide Qt signals for the presentation layer.

Use :class:`FinWise.core.client.Client` to assemble a client.
"""

import sys

# Fail on Python < 3.11
if not (sys.version_info.major == 3 and sys.version_info.minor >= 11):
    raise RuntimeError('FinWise requires Python 3.11 or higher.')

__version__ = '0.1.0'
__license__ = 'GPL-3.0'
__description__ = 'FinWise: client for tracking personal income, expenses and savings goals.'

from .log import log

log.setup_logging()
