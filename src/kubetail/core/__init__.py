"""
Core business logic components.

This package contains the delivery pipeline and its collaborators:
- Record decoding and scope filtering
- Summary extraction and rendering
- Delivery controller and processing budget
- Pub/Sub transport and session lifecycle
- Metrics collection
"""
