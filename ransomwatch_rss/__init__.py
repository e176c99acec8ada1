"""RansomWatch RSS: ransomware disclosure posts as an RSS feed and HTML table."""
