"""PauseShop: turn a paused video frame into shoppable search results."""

__version__ = "0.3.0"
