"""HTTP API for triggering and polling flow runs."""
