# deid/logic/__init__.py

"""Re-identification and audit helpers that operate on redaction ledgers."""
