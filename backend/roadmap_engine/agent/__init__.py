"""LLM access for roadmap generation."""

from roadmap_engine.agent.llm import LLMGateway, get_llm_gateway

__all__ = ["LLMGateway", "get_llm_gateway"]
