"""
Result reporting module.

Prints a console summary of a finished job and exports result sets as
JSON, YAML, CSV or HTML.
"""

from .exporter import ResultExporter
from .summary import print_summary

__all__ = ["ResultExporter", "print_summary"]
