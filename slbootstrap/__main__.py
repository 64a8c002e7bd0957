"""Allow ``python -m slbootstrap``."""

from slbootstrap.cli.parser import main

if __name__ == "__main__":
    main()
