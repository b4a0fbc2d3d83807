"""mongoline command-line interface."""
