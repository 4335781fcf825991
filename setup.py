"""
Legacy setup shim for direct_forecast.
Package metadata and dependencies live in pyproject.toml.
"""
from setuptools import setup

# pip install -e . reads everything from pyproject.toml
setup()
