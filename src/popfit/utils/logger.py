#########################################################################################
##
##                                 LOGGING MANAGER
##                                (utils/logger.py)
##
##        Process-wide access point for the 'popfit' logger hierarchy. Library
##        modules request child loggers here, applications call 'configure'.
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import logging
import sys


# CLASS =================================================================================

class LoggerManager:
    """Owner of the ``popfit`` logger hierarchy.

    All library modules obtain their logger through :meth:`get_logger`, which
    returns children of the ``popfit`` root logger (``popfit.opt.estimator``,
    ...). Nothing is printed until an application calls :meth:`configure`;
    until then the root carries only a ``NullHandler``.

    Example
    -------
    .. code-block:: python

        from popfit import LoggerManager

        LoggerManager.configure(level="DEBUG")
        log = LoggerManager.get_logger("opt.bees")
        log.info("sub-run finished")
    """

    ROOT_NAME = "popfit"
    DEFAULT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

    _handler: logging.Handler | None = None


    @classmethod
    def root(cls) -> logging.Logger:
        """Return the package root logger."""
        logger = logging.getLogger(cls.ROOT_NAME)
        if not logger.handlers:
            logger.addHandler(logging.NullHandler())
        return logger


    @classmethod
    def get_logger(cls, name: str | None = None) -> logging.Logger:
        """Return ``popfit`` or the child logger ``popfit.<name>``."""
        root = cls.root()
        if not name:
            return root
        if name.startswith(cls.ROOT_NAME + "."):
            name = name[len(cls.ROOT_NAME) + 1:]
        return root.getChild(name)


    @classmethod
    def configure(cls, level=logging.INFO, stream=None, fmt: str | None = None) -> logging.Logger:
        """Attach a single stream handler to the root logger.

        Calling this again replaces the previously installed handler rather
        than stacking a second one.

        Parameters
        ----------
        level : int or str
            Logging level for the ``popfit`` hierarchy.
        stream : file-like, optional
            Destination stream, ``sys.stderr`` by default.
        fmt : str, optional
            ``logging.Formatter`` format string.
        """
        root = cls.root()

        if cls._handler is not None:
            root.removeHandler(cls._handler)

        handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
        handler.setFormatter(logging.Formatter(fmt or cls.DEFAULT_FORMAT))
        root.addHandler(handler)
        root.setLevel(level)

        cls._handler = handler
        return root


    @classmethod
    def reset(cls) -> None:
        """Remove the handler installed by :meth:`configure`."""
        if cls._handler is not None:
            cls.root().removeHandler(cls._handler)
            cls._handler = None
