"""Entry point for running the server as a module.

Usage:
    python -m perplexity_mcp
"""

from perplexity_mcp.cli.serve import main

if __name__ == "__main__":
    main()
