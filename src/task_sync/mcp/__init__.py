"""MCP server surface for the task store and sync engine."""
