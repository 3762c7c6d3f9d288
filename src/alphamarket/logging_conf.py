import logging, sys, os

def setup_logging():
    logger = logging.getLogger("alphamarket")
    if logger.handlers:
        return logger
    level = logging.INFO if os.getenv("ENV","dev")!="dev" else logging.DEBUG
    handler = logging.StreamHandler(sys.stdout)
    fmt = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    handler.setFormatter(fmt)
    logger.addHandler(handler)
    logger.setLevel(level)
    # uvicorn owns the root logger; keep our records out of it.
    logger.propagate = False
    # httpx logs every request line at INFO, including query strings.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logger
