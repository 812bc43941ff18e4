# deid/service/__init__.py

"""Service layer: configuration, public pipeline and document processing."""
