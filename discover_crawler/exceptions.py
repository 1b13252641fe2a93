"""Exception hierarchy for the discover catalog crawler."""


class CrawlerError(Exception):
    """Base class for crawler failures."""


class BrowserLaunchError(CrawlerError):
    """The browser process could not be started."""


class SessionError(CrawlerError):
    """
    A single navigation or evaluation failed.

    Transient: callers contain it to the current step and carry on.
    """


class NavigationTimeout(SessionError):
    """Navigation or a wait exceeded its timeout."""


class SessionClosedError(CrawlerError):
    """
    The browser or page is gone.

    Fatal for the run: nothing downstream can recover, so it propagates.
    """
