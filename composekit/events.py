"""Progress events and the factories for the common ones."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from composekit.spinner import Spinner


class EventStatus(IntEnum):
    """State of the task an event reports on."""

    WORKING = 0
    DONE = 1
    ERROR = 2
    WARNING = 3


@dataclass
class Event:
    """A progress event for one task, identified by ``id``."""

    id: str
    parent_id: str = ""
    text: str = ""
    status: EventStatus = EventStatus.WORKING
    status_text: str = ""
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    spinner: Optional[Spinner] = None

    def stop(self) -> None:
        """Record the end time and freeze the spinner."""
        self.end_time = time.monotonic()
        if self.spinner is not None:
            self.spinner.stop()


def new_event(event_id: str, status: EventStatus, status_text: str) -> Event:
    """Create an event with the given status."""
    return Event(id=event_id, status=status, status_text=status_text)


def error_message_event(event_id: str, msg: str) -> Event:
    """Create an error event carrying ``msg``."""
    return new_event(event_id, EventStatus.ERROR, msg)


def error_event(event_id: str) -> Event:
    return new_event(event_id, EventStatus.ERROR, "Error")


def creating_event(event_id: str) -> Event:
    return new_event(event_id, EventStatus.WORKING, "Creating")


def starting_event(event_id: str) -> Event:
    return new_event(event_id, EventStatus.WORKING, "Starting")


def started_event(event_id: str) -> Event:
    return new_event(event_id, EventStatus.DONE, "Started")


def waiting(event_id: str) -> Event:
    return new_event(event_id, EventStatus.WORKING, "Waiting")


def healthy(event_id: str) -> Event:
    return new_event(event_id, EventStatus.DONE, "Healthy")


def exited(event_id: str) -> Event:
    return new_event(event_id, EventStatus.DONE, "Exited")


def restarting_event(event_id: str) -> Event:
    return new_event(event_id, EventStatus.WORKING, "Restarting")


def restarted_event(event_id: str) -> Event:
    return new_event(event_id, EventStatus.DONE, "Restarted")


def running_event(event_id: str) -> Event:
    return new_event(event_id, EventStatus.DONE, "Running")


def created_event(event_id: str) -> Event:
    return new_event(event_id, EventStatus.DONE, "Created")


def stopping_event(event_id: str) -> Event:
    return new_event(event_id, EventStatus.WORKING, "Stopping")


def stopped_event(event_id: str) -> Event:
    return new_event(event_id, EventStatus.DONE, "Stopped")


def killing_event(event_id: str) -> Event:
    return new_event(event_id, EventStatus.WORKING, "Killing")


def killed_event(event_id: str) -> Event:
    return new_event(event_id, EventStatus.DONE, "Killed")


def removing_event(event_id: str) -> Event:
    return new_event(event_id, EventStatus.WORKING, "Removing")


def removed_event(event_id: str) -> Event:
    return new_event(event_id, EventStatus.DONE, "Removed")