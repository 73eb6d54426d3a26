import logging
import sys

from lyricflash.pipeline.cli import LOG_FORMAT, main

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    sys.exit(main())
