"""Utility helpers for SmartWill Gate."""
