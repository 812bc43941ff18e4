# deid/engine/__init__.py

"""Engine package providing the pattern library and redaction passes.

This package contains the regex redaction pass, the entity-recognition
augmentation pass and the process-wide model loader.
"""
