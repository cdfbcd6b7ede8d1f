"""Command line interface for the Lambda Cloud API."""
