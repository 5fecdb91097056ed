"""Services: ownership partitioning and git working copies."""
