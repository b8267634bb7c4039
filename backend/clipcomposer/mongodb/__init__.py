"""MongoDB persistence for render jobs."""
