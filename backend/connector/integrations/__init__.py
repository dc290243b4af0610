"""External authorization-server integrations."""
