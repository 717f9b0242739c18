"""Early-boot side effects: dotenv and logging.

Imported before the rest of pzsvc_exec so that environment variables and
log handlers are in place before any config is read.
"""

import logging

# -- Load .env before config env vars are read --------------------------------
from dotenv import load_dotenv

load_dotenv()

# -- pzsvc_exec / third-party logging setup -----------------------------------
pzsvc_logger = logging.getLogger("pzsvc_exec")
pzsvc_logger.setLevel(logging.INFO)
if not pzsvc_logger.handlers:
    handler = logging.StreamHandler()
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s"))
    pzsvc_logger.addHandler(handler)
pzsvc_logger.propagate = False

# httpx logs every request at INFO
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
