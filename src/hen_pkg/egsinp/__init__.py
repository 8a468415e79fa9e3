"""Parsing and formatting of ``.egsinp`` configuration files."""

from .tokenizer import (
    Seed,
    Token,
    Start,
    Stop,
    KeyValue,
    TokenStream,
    format_text,
    format_file,
)

__all__ = [
    "Seed",
    "Token",
    "Start",
    "Stop",
    "KeyValue",
    "TokenStream",
    "format_text",
    "format_file",
]
