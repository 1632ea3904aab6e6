import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(app):
    """Configure root logging from the app's LOG_LEVEL setting."""
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    app.logger.setLevel(level)
    # socket.io and engine.io are chatty at INFO
    logging.getLogger("socketio").setLevel(max(level, logging.WARNING))
    logging.getLogger("engineio").setLevel(max(level, logging.WARNING))
