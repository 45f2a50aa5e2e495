"""Turn a code repository into an AI-generated README."""

__version__ = "0.1.0"
