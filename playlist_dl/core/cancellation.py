"""
Cooperative stop signal shared between the coordinating task and the worker
threads running conversions.
"""

import threading


class CancellationToken:
    """
    A one-shot stop flag.

    The scheduler checks `stop_requested` at every fill-phase boundary. Worker
    threads that can abort mid-operation poll `abort_requested`.
    """

    def __init__(self):
        self._stop = threading.Event()
        self._abort = threading.Event()

    def request_stop(self, abort_in_flight: bool = False) -> None:
        self._stop.set()
        if abort_in_flight:
            self._abort.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    @property
    def abort_requested(self) -> bool:
        return self._abort.is_set()
