from .pattern_matcher import CompiledQuery, PatternMatcher, compile_query

__all__ = ["CompiledQuery", "PatternMatcher", "compile_query"]
