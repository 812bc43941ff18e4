# deid/core/__init__.py

"""Core domain models and utilities used across the de-identification engine.

This package provides domain types, exceptions, category definitions and the
pattern configuration loader shared by the rest of the application.
"""
