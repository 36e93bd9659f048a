"""
Reason Codes
============

Fixed set of machine-readable reason codes for verdicts and state
transitions.

Rules:
    - No free-text explanations
    - One clear cause per code
"""

from enum import Enum


class ReasonCode(str, Enum):
    """
    Machine-readable explanation codes.

    Verdict reasons explain why a sampled frame was kept or discarded.
    Transition reasons explain why the capture session changed status.
    """

    # Duplicate verdicts
    IDENTICAL_BYTES = "IDENTICAL_BYTES"
    AVERAGE_HASH_MATCH = "AVERAGE_HASH_MATCH"
    PERCEPTUAL_HASH_SIMILAR = "PERCEPTUAL_HASH_SIMILAR"

    # Distinct verdicts
    PERCEPTUAL_HASH_CHANGED = "PERCEPTUAL_HASH_CHANGED"
    NO_BASELINE = "NO_BASELINE"
    NO_STAGE_DECIDED = "NO_STAGE_DECIDED"

    # Stage could not decide
    INCONCLUSIVE = "INCONCLUSIVE"

    # Operator commands
    OPERATOR_START = "OPERATOR_START"
    OPERATOR_STOP = "OPERATOR_STOP"
    OPERATOR_RESET = "OPERATOR_RESET"
    OPERATOR_ACKNOWLEDGE = "OPERATOR_ACKNOWLEDGE"

    # Source conditions
    SOURCE_ACQUIRED = "SOURCE_ACQUIRED"
    SOURCE_LOST = "SOURCE_LOST"
    SOURCE_BUFFERING = "SOURCE_BUFFERING"
    SOURCE_PAUSED_OR_ENDED = "SOURCE_PAUSED_OR_ENDED"
    SEARCHING = "SEARCHING"
    SEARCH_TIMEOUT = "SEARCH_TIMEOUT"
    SAMPLED = "SAMPLED"

    # Programming errors surfaced at the tick boundary
    INTERNAL_ERROR = "INTERNAL_ERROR"
