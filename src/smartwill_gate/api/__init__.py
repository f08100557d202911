"""HTTP surface of the SmartWill Gate service."""
