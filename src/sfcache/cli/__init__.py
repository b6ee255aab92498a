"""Command line interface for the storefront cache."""
