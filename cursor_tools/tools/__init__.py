"""
MCP Tools Package

Each tool inherits from MCPTool and is registered explicitly by
registry.build_default_registry().
"""
