import logging
import os

from flask_cors import CORS

from skillswap import create_app, socketio
from skillswap.config import Config

logger = logging.getLogger(__name__)

# Create Flask app instance
app = create_app()

# Dynamically configure CORS
CORS(app, resources={
    r"/*": {
        "origins": Config.CORS_ORIGINS or "*",
        "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        "allow_headers": ["Authorization", "Content-Type"],
        "expose_headers": ["Authorization"],
        "supports_credentials": bool(Config.CORS_ORIGINS),
    }
})

logger.info("Running in %s mode", 'production' if os.getenv('FLASK_ENV') == 'production' else 'development')
logger.info("Allowed CORS Origins: %s", Config.CORS_ORIGINS or '*')

if __name__ == '__main__':
    debug_mode = Config.DEBUG
    logger.info("Debug mode is %s", 'on' if debug_mode else 'off')
    socketio.run(app, debug=debug_mode, host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
