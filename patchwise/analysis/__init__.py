"""Source analysis — tokens, code regions, syntax trees and top-level scans."""

from .tokenizer import Token, tokenize, normalize_token, tokens_in_range
from .region import CodeRegion, extract_code_region, looks_like_html
from .scanner import ScannedDeclaration, scan_top_level, find_top_level, blank_non_code
from .syntax import SyntaxAnalyzer, SyntaxTree, ParseUnavailable, Declaration

__all__ = [
    "Token", "tokenize", "normalize_token", "tokens_in_range",
    "CodeRegion", "extract_code_region", "looks_like_html",
    "ScannedDeclaration", "scan_top_level", "find_top_level", "blank_non_code",
    "SyntaxAnalyzer", "SyntaxTree", "ParseUnavailable", "Declaration",
]
