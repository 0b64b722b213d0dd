"""Business logic services.

- llm: completion pipeline (codec, event stream parser, pacer, extractor, client)
- deck_assistant: structured deck completion, validation and patch merging
- redact: log guard and redaction helpers
"""
