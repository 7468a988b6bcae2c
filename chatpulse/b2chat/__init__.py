"""
B2Chat Sync Module
==================

Pulls contacts and chats from the B2Chat export API into staging tables.

Layers:
- domain: export records, pages, extract statistics
- application: ExtractService, options/results, repository interfaces
- infrastructure: API client, rate-limited queue, SQLAlchemy storage
- interfaces: FastAPI routes
"""
