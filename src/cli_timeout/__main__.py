"""cli-timeout 入口点。

支持: python -m cli_timeout
"""

from .app import main

if __name__ == "__main__":
    main()
