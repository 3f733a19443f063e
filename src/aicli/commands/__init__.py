"""Click subcommands for the ``aicli`` entry point."""
