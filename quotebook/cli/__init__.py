"""quotebook command-line interface."""
