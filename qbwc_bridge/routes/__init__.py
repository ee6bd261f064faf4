"""HTTP routes for the QBWC bridge."""
