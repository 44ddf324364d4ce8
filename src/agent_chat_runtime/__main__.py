"""Entry point for ``python -m agent_chat_runtime``."""

from .cli import main

if __name__ == "__main__":
    main()
