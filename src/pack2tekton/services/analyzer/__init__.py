from .core import StackInfo, analyze_stack, discover_build_pack

__all__ = ["StackInfo", "analyze_stack", "discover_build_pack"]
