"""FastAPI main application for the storyteller game backend"""

import logging

from .engine import SessionRegistry
from .rules import rules_from_env
from .ws.server import create_app

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

registry = SessionRegistry(rules_from_env())
app = create_app(registry)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
