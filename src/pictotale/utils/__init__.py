"""
Utility modules for the PictoTale story pipeline.

Modules:
- word_count: Word-ceiling enforcement
- safety: Denylist content safety gate
- metadata: Reading metadata and cost estimation
- prompt_builder: Story, continuation, title and illustration prompts
- retry: Retry-with-backoff executor and error classification
- degradation: Fatal vs degradable step policy
- repository: Story record storage (import directly; depends on models)
- object_storage: Binary asset storage
"""

from .word_count import WordCountValidator, enforce_word_limit, MAX_WORD_COUNT
from .safety import ContentSafetyValidator, SafetyResult
from .metadata import MetadataCalculator, ReadingMetadata, CostEstimate, estimate_cost
from .retry import RetryExecutor, RetryPolicy, is_non_retryable
from .degradation import StepKind, run_step

__all__ = [
    "WordCountValidator",
    "enforce_word_limit",
    "MAX_WORD_COUNT",
    "ContentSafetyValidator",
    "SafetyResult",
    "MetadataCalculator",
    "ReadingMetadata",
    "CostEstimate",
    "estimate_cost",
    "RetryExecutor",
    "RetryPolicy",
    "is_non_retryable",
    "StepKind",
    "run_step",
]
