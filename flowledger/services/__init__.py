"""
Services package.

Subpackages:
- dates: localized date parsing and formatting
- crypto: password-based envelope encryption
- storage: key-value backends, encrypted and per-user keyed access
- recurrence: subscription billing state machine
- projection: upcoming transaction view
- transactions: pure list edits and receipt drafts
"""
