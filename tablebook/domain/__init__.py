"""Pure scheduling rules with no database access."""
