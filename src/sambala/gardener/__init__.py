"""Session pool that drives interactive smbclient processes.

Each session owns one smbclient subprocess on a pseudo-terminal and is
served by one worker thread.  Workers pull command lines from a shared,
lock-protected store, so callers can either block on a single command
(interactive mode) or queue many and harvest the results later (queue
mode).  Commands whose meaning depends on session state, such as ``cd``,
must go through ``WorkerPool.broadcast`` so every session sees them.
"""
