"""LLM-backed agents: the task identifier and the enhancement sub-agent."""
