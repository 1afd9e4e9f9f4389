"""cronpost: cron-scheduled HTTP POST delivery service."""
