"""
Services package for the QBWC bridge.

This package contains the protocol engine:
- job_queue: in-memory job queue
- session: QBWC ticket session
- response_classifier: success/failure decision for QuickBooks responses
- qbwc_service: the QBWC protocol dispatcher and its SOAP binding
"""
