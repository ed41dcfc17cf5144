"""Change-record based package repository publishing."""

from .changelog import ChangeLog, merge, merge_all
from .filesystem import FileSystemRepositoryPublisher, create_publisher
from .publisher import RepositoryPublisher
from .records import ChangeRecord, ContentsRecord, TransmitRecord
from .transmit import commit, pull, push

__all__ = [
    "ChangeLog",
    "merge",
    "merge_all",
    "FileSystemRepositoryPublisher",
    "create_publisher",
    "RepositoryPublisher",
    "ChangeRecord",
    "ContentsRecord",
    "TransmitRecord",
    "commit",
    "pull",
    "push",
]
