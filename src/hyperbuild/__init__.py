"""
hyperbuild: container image builder with a content-addressable store and an
OCI Distribution push/pull client.
"""

__version__ = "0.1.0"
