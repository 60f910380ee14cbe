"""Allow ``python -m linkerd_await``."""

from .cli import main

if __name__ == "__main__":
    main()
