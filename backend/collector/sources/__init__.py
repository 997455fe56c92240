"""Per-event data sources: ESPN JSON endpoints, ESPN RSS, Reddit."""
