"""Interfaces: CLI and MCP servers."""
