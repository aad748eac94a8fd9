"""Supervise, probe and inspect the processes of a local development stack."""

__version__ = "0.3.0"