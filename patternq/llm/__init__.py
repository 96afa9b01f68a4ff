"""LLM access - Gemini model manager, retrying vision call, VisionModel protocol."""
