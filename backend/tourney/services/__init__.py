"""
Services Layer

Tournament engine operations that:
- Accept a Store plus domain inputs (IDs, scores, dates)
- Return domain outputs (models, dicts)
- Do NOT depend on HTTP request/response objects
- Run every multi-row mutation inside Store.with_transaction
"""
