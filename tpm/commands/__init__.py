"""tpm subcommands."""
