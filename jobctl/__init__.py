"""jobctl - command line interface for the job queue"""

from jobqueue import __version__

__all__ = ["__version__"]
