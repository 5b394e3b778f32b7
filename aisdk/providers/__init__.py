from typing import List


def all_registrations() -> List:
    """Every built-in provider registration, in lookup priority order."""
    from . import anthropic, azure, bedrock, gateway, google, google_vertex, openai, openai_compatible

    regs: List = []
    for module in (openai, azure, anthropic, google, google_vertex, bedrock, gateway, openai_compatible):
        regs.extend(module.REGISTRATIONS)
    return regs


__all__ = ["all_registrations"]
