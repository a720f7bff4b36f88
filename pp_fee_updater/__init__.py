"""Keeps a privacy pool's cached gas price in step with the live network."""

__version__ = "0.1.0"
