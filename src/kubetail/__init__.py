"""
kube-tail - tail -f for Kubernetes Engine logs exported to Pub/Sub

Subscribes to a Cloud Pub/Sub topic carrying Cloud Logging entries,
filters them by container, namespace and pod name, and prints one
line per matching record.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
