"""tokenlock command line interface."""
