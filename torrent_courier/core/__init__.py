"""
Core application engine.

This package contains the long-running loops. The `CourierService` owns them:
the `FeedScanner` discovers new feed items for the `LinkDownloader`, and the
`ScrapeLoop` reconciles daemon state with the store and reports completions.
"""
