"""Pick'em scoring and results-reconciliation core."""
