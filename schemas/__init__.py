"""Sheet layouts for every entity table."""
