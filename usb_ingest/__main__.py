"""Allow running as ``python -m usb_ingest``."""

from .cli import main

if __name__ == "__main__":
    main()
