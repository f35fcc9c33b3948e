"""Flask CLI commands for AccountGuard."""
