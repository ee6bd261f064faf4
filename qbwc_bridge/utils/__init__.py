"""Helpers for building QBXML requests and QWC descriptors."""
