"""
CLI Module for the UET configuration store

Provides command-line tools for operators:
- uetctl: encrypt, decrypt, inspect and validate the configuration document

Usage:
    python -m uet.cli.uetctl status config.yaml
"""

from .uetctl import main as uetctl_main

__all__ = [
    'uetctl_main',
]
