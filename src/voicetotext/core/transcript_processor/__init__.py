from .reconciler import EmissionState, Reconciler, common_word_prefix, normalize_word

__all__ = [
    "EmissionState",
    "Reconciler",
    "common_word_prefix",
    "normalize_word",
]
