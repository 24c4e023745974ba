"""Hecate terminal client: chat with a model that can use approval-gated tools."""

__version__ = "0.4.0"
