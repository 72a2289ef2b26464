# server/core/exceptions.py
"""
Custom exceptions for the backend
"""

class LeafScanError(Exception):
    """Base exception for LeafScan backend"""
    pass

class AgentError(LeafScanError):
    """Agent-related errors"""
    pass

class AgentConfigError(LeafScanError):
    """Agent configuration errors"""
    pass

class InputError(LeafScanError):
    """Invalid caller input, raised before any network call"""
    pass

class PlanStateError(InputError):
    """Operation not allowed in the monitoring plan's current status"""
    pass

class CompletionError(LeafScanError):
    """Completion service failed"""
    pass

class AuthQuotaError(CompletionError):
    """Completion service rejected the call for auth or quota reasons"""
    pass

class ParseError(LeafScanError):
    """Completion text could not be turned into a structured record"""
    pass

class RefinementParseError(ParseError):
    """Refinement completion could not be normalized"""
    pass

class ToolError(LeafScanError):
    """Tool lookup failed"""
    pass
