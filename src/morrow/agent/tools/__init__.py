"""Tool registry, request-forgery policy and built-in tools."""

from .url_policy import DEFAULT_URL_POLICY, URLPolicy, check_url
from .website import WebsiteIntelFetcher, extract_page_intel
from .registry import RegisteredTool, ToolRegistry
from .builtin import DEMO_LEADS, MorrowToolbox

__all__ = [
    "DEFAULT_URL_POLICY",
    "URLPolicy",
    "check_url",
    "WebsiteIntelFetcher",
    "extract_page_intel",
    "RegisteredTool",
    "ToolRegistry",
    "DEMO_LEADS",
    "MorrowToolbox",
]
