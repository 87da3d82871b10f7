from .text_output import TextInjector

__all__ = ["TextInjector"]
