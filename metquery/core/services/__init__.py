"""Report services, one per analytics workflow."""
