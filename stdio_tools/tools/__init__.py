"""
stdio Tools Package

All tools in this directory are auto-discovered by registry.py
Each tool inherits from Tool (or HttpTool for network tools) and is named
"<namespace>.<tool>", where the namespace is the group the installer uses.
"""

# Tools are auto-discovered, no explicit imports needed
