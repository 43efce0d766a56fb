from .block import Block, ChainValidation

__all__ = ["Block", "ChainValidation"]
