"""Small automation scripts: deploy-component finder and power monitor."""

__version__ = "0.3.0"
