import logging


class EntityLoggingAdapter(logging.LoggerAdapter):
    """Prefixes every message with the entity (e.g. a repository checkout) it is about."""

    def process(self, msg, kwargs):
        return '[%s] %s' % (self.extra['entity'], msg), kwargs


def get_logger(module_name=None):
    """
    Returns a logger appropriate for use in the hack tools.
    Modules should request a logger using their __name__
    """

    logger_name = 'hack_tools'

    if module_name:
        logger_name = '{}.{}'.format(logger_name, module_name)

    return logging.getLogger(logger_name)
