"""Email notification rendering, delivery and retry."""
