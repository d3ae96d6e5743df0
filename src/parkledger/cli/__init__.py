"""Command-line interface for parkledger."""
