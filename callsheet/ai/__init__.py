"""AI package - call scripts and queue prioritization.

Suggestions are advisory. A failed or missing provider never blocks the
calling workflow.

Modules:
    - claude_client: Lazy Anthropic client mixin
    - advisor: Prompt building, provider dispatch, reply validation
"""
