"""SmartWill Gate: wallet and email credential verification service."""

__version__ = "0.1.0"
