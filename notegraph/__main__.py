"""Entry point for python -m notegraph"""

from notegraph.app.cli import main

if __name__ == "__main__":
    main()
