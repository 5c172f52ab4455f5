"""Utility functions for njord."""

from njord.utils.parsing import (
    parse_amount,
    parse_date,
    parse_datetime,
    read_json_file,
)

__all__ = ["parse_date", "parse_datetime", "parse_amount", "read_json_file"]
