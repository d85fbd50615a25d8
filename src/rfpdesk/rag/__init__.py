"""rfpdesk answer pipeline — LLM client, context assembly, answer orchestration."""
