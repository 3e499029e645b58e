"""Intent parsing and validation.

The intent layer converts a natural-language payment command into a strict `Intent` object, which
is then persisted as pending transactions awaiting confirmation.
"""
