"""Package registry integrations."""
