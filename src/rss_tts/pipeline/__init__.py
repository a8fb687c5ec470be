"""Request queue, worker pool and run orchestration."""
