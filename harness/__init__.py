"""Process-level wiring for the VNet integration tests."""

from .context import HarnessContext, build_context

__all__ = ["HarnessContext", "build_context"]
