"""
FastAPI backend for the gear shop notifier.

Provides REST API endpoints for:
- Triggering scrape runs and checking whether one is in progress
- Accepting product change events and sending new-product alerts
"""
