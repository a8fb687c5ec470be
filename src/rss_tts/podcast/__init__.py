"""Feed retrieval and the feed-to-queue producer."""
