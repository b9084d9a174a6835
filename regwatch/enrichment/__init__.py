"""Optional enrichment: summaries and regulatory identifiers."""
