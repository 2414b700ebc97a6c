"""
Shutdown token shared by the accept loop and every blocking socket call.

A signal handler runs with the program's normal control flow suspended,
so the only thing it may do is flip this flag. Everything else (leaving
the accept loop, abandoning a read, printing the report) happens later
in ordinary code that polls ``cancelled``.
"""

import signal
from typing import Optional


class ShutdownToken:
    """
    One-way cancellation flag.
    
    Set at most once by ``cancel()`` and never cleared. Reading it is a
    single attribute load, so no lock is needed.
    """
    
    __slots__ = ("_cancelled", "_signum")
    
    def __init__(self):
        self._cancelled = False
        self._signum: Optional[int] = None
    
    @property
    def cancelled(self) -> bool:
        return self._cancelled
    
    @property
    def signal_name(self) -> Optional[str]:
        """Name of the signal that cancelled the token, if any."""
        if self._signum is None:
            return None
        try:
            return signal.Signals(self._signum).name
        except ValueError:
            return str(self._signum)
    
    def cancel(self, signum: Optional[int] = None) -> None:
        """Request shutdown. Safe to call from a signal handler."""
        if not self._cancelled:
            self._signum = signum
            self._cancelled = True
    
    def __repr__(self) -> str:
        return f"ShutdownToken(cancelled={self._cancelled})"
