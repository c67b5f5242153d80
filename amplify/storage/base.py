# storage/base.py
import logging
from abc import ABC, abstractmethod
from typing import List
from .dto import FileRecord
from ..exceptions import ConfigurationError, UnsupportedParentsError


class StorageClient(ABC):
    """
    Abstract base class for a folder-based cloud storage client.
    Defines the interface the watcher and the mover pipeline depend on, so a
    fake implementation can stand in for Google Drive in tests.
    """

    @abstractmethod
    def get_file(self, file_id: str) -> FileRecord:
        """
        Fetches the metadata of a single file.

        :param file_id: The ID of the file.
        :return: A FileRecord with the file's current parents.
        """
        pass

    @abstractmethod
    def list_files(self, folder_id: str) -> List[FileRecord]:
        """
        Lists all files directly under a folder.

        :param folder_id: The ID of the folder to list.
        :return: A list of standardized FileRecord DTOs.
        """
        pass

    @abstractmethod
    def update_parents(self, file_id: str, add_parent: str, remove_parent: str):
        """
        Replaces one parent of a file with another, as a single update.

        :param file_id: The ID of the file to update.
        :param add_parent: The ID of the folder to add.
        :param remove_parent: The ID of the folder to remove.
        """
        pass

    def move_file(self, file_id: str, new_folder_id: str):
        """
        Moves a file from its current parent folder to another one.

        The parents are re-read first. Only single-parent files can be moved:
        a file without parents raises ConfigurationError, a file with several
        raises UnsupportedParentsError, and in both cases nothing is updated.

        :param file_id: The ID of the file to move.
        :param new_folder_id: The ID of the destination folder.
        """
        file = self.get_file(file_id)
        logging.info(f"File parents before moving: {file.parents}")
        if not file.parents:
            raise ConfigurationError(f"File {file_id} does not have any parents")
        if len(file.parents) > 1:
            raise UnsupportedParentsError(
                f"File {file_id} has {len(file.parents)} parents {file.parents}; only single-parent files can be moved"
            )
        self.update_parents(file_id, add_parent=new_folder_id, remove_parent=file.current_parent)
        logging.info(f"File {file_id} moved to folder {new_folder_id} successfully")

    @abstractmethod
    def download_file(self, file_id: str) -> bytes:
        """
        Downloads the content of a file.

        :param file_id: The ID of the file to download.
        :return: The file content.
        """
        pass

    @abstractmethod
    def create_file(self, name: str, folder_id: str, content: bytes) -> str:
        """
        Creates a new file with the given content in a folder.

        :param name: The name for the new file.
        :param folder_id: The ID of the destination folder.
        :param content: The file content.
        :return: The ID of the created file.
        """
        pass

    @abstractmethod
    def watch_folder(self, folder_id: str, channel_id: str, address: str, token: str):
        """
        Registers a change subscription that pushes notifications to `address`.

        :param folder_id: The ID of the folder to watch.
        :param channel_id: A unique identifier for the notification channel.
        :param address: The callback URL receiving the notifications.
        :param token: An opaque token echoed back with every notification.
        """
        pass

    @abstractmethod
    def verify_folder_exists(self, folder_id: str):
        """
        Verifies if a folder exists with the given ID.
        Raises an error if the folder does not exist or is inaccessible.

        :param folder_id: The ID of the folder to verify.
        """
        pass
