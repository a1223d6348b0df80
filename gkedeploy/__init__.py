"""Deployment parameter resolution and validation for GKE pipeline stages."""
__version__ = "0.1.0"
