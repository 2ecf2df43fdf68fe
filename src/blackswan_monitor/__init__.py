"""Black Swan Monitor - aggregates live market-analysis feeds and scores systemic risk with an LLM.

The service keeps the latest document from each upstream analysis feed in memory,
merges them into a snapshot on every analysis cycle, asks a reasoning model for a
structured black swan assessment, validates the answer and appends it to a store.

Components:
- feeds: feed cache and the push channels that keep it current
- pipeline: aggregation and the per-cycle orchestrator
- llm: prompt formatting, upstream client, response validation
- store: SQLite persistence for feed documents and analysis results
- main_api / main_scheduler: HTTP status surface and the hourly trigger
- mlops: MLflow tracing
"""
