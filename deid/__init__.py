# deid/__init__.py

"""PHI de-identification and reversible re-identification engine.

Strips identifiers from clinical text before it is sent to an external
language model and restores them into the model's output afterwards.
"""
