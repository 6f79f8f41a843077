"""Process-wide handles shared between the app factory, jobs and the CLI."""

import logging

app = None
scheduler = None
logger = logging.getLogger("uvicorn.error")
