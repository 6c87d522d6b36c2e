"""Crosscutting concerns: settings, logging, exception taxonomy."""
