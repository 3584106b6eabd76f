"""Fluxstack: a moderated directory of AI tools."""
