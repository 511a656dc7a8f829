"""LLM-facing services for RexAI.

Document summarization with provider failover, and safety validation of
structured AI medical responses.
"""

from importlib import import_module

__all__ = [
    "SummarizationChain",
    "OpenAISummarizer",
    "GeminiSummarizer",
    "SummarizationFailure",
    "MedicalValidator",
    "RxNormClient",
]

_LAZY_IMPORTS = {
    "SummarizationChain": ("rexai.services.llm.summarization", "SummarizationChain"),
    "OpenAISummarizer": ("rexai.services.llm.summarization", "OpenAISummarizer"),
    "GeminiSummarizer": ("rexai.services.llm.summarization", "GeminiSummarizer"),
    "SummarizationFailure": ("rexai.services.llm.summarization", "SummarizationFailure"),
    "MedicalValidator": ("rexai.services.llm.medical_validator", "MedicalValidator"),
    "RxNormClient": ("rexai.services.llm.drug_lookup", "RxNormClient"),
}


def __getattr__(name: str):
    target = _LAZY_IMPORTS.get(name)
    if target is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = target
    return getattr(import_module(module_name), attr_name)
