from ipyjob.parsing.notebook_parser import parse

__all__ = ["parse"]
