"""Interactive command line."""
