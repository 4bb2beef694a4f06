import logging

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%d/%m/%Y - %H:%M:%S'
SEPARATOR = '-' * 40


def setup_logging(log_file=None, debug=False):
    """Configure the root logger: console output plus an appended log file.

    Chatty third-party loggers stay at WARNING.
    """
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='a', encoding='utf-8'))

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
    for name in ('urllib3', 'PIL'):
        logging.getLogger(name).setLevel(logging.WARNING)


def close_logging():
    """Write a separator in the log files and close them."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, logging.FileHandler):
            handler.stream.write(SEPARATOR + '\n')
            handler.close()
            root.removeHandler(handler)
