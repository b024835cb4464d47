"""Exit codes for the procluster CLI."""

EXIT_FAILURE = 1
