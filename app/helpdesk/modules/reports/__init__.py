"""Reports and dashboard statistics over the ticket list."""
