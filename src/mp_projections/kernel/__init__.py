"""Kernel – errors, event envelope and messaging ports."""
