"""rfpdesk document generation — prompts, draft sections, .docx writers."""
