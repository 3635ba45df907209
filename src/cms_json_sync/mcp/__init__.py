"""MCP server exposing collection import and export as tools."""
