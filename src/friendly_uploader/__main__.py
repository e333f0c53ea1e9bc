"""Allow ``python -m friendly_uploader``."""

from friendly_uploader.cli import main

if __name__ == "__main__":
    main()
