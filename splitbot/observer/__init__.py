"""Event intake: webhook server and periodic poller."""
