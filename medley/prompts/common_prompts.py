# medley/prompts/common_prompts.py
"""
Fixed texts shown when nothing can be generated.

These are the deterministic fallbacks of the turn kinds plus the messages
the orchestrator shows on its own.
"""

# ============================================================================
# TURN FALLBACKS
# ============================================================================

# Schema has no resolvable first question
GREETING_FALLBACK = """Let's get started."""

# Successor has info; acknowledgment could not be generated
ACK_FALLBACK = """Thank you for sharing that."""

# Consultation finished
CLOSING_FALLBACK = """Thank you for your time."""

# Successor id does not exist in the schema
DANGLING_FALLBACK = """Thank you for sharing that information."""

# ============================================================================
# ERRORS
# ============================================================================

# Unexpected failure while handling a message
APOLOGY = """I apologize, I'm having a little trouble. Could you try again?"""

# Message received while the previous answer is still being processed
BUSY = """One moment please, I'm still responding to your last answer."""
