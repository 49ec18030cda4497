"""
UI-facing seam of FinWise.

- :mod:`FinWise.ui.actions` – Application-wide Qt signals the presentation layer listens on.
"""
