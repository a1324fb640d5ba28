"""binforge CLI: Typer-based command-line interface.

All human-facing output uses Rich; machine-readable results are printed as
JSON.
"""
