# pipeline.py
import logging
import time
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel

from .exceptions import FileUnavailableError, NotInInputFolderError, PermanentError, PipelineError
from .storage.base import StorageClient
from .storage.dto import FileRecord


class FolderRole(str, Enum):
    INPUT = "input"
    STAGING = "staging"
    OUTPUT = "output"


class FolderConfig(BaseModel):
    """The three pipeline folders. They are not required to be distinct."""

    input: str
    staging: str
    output: str

    def folder_for(self, role: FolderRole) -> str:
        return getattr(self, role.value)


class PipelineState(str, Enum):
    AT_INPUT = "at_input"
    AT_STAGING = "at_staging"
    PROCESSED = "processed"
    AT_OUTPUT = "at_output"
    FAILED = "failed"


class OutputMode(str, Enum):
    MOVE = "move"  # the file itself is moved to the output folder
    COPY = "copy"  # a new file with the processed content is created there


class PipelineResult(BaseModel):
    file_id: str
    file_name: str
    state: PipelineState
    output_file_id: Optional[str] = None


class SimulatedProcessor:
    """
    Stand-in for a real transformation: waits and passes the content through
    unchanged.
    """

    def __init__(self, delay_seconds: float = 2.0, sleep: Callable[[float], None] = time.sleep):
        self.delay_seconds = delay_seconds
        self.sleep = sleep

    def process(self, record: FileRecord, content: Optional[bytes] = None) -> Optional[bytes]:
        self.sleep(self.delay_seconds)
        logging.info(f"Processing file {record.id}")
        return content


class Mover:
    """
    Drives a single file through input -> staging -> output.

    Each step re-reads the file from storage. The first failing step aborts
    the run and nothing already done is undone, so a file can be left in the
    staging folder.
    """

    def __init__(
        self,
        storage_client: StorageClient,
        folders: FolderConfig,
        processor=None,
        output_mode: OutputMode = OutputMode.MOVE,
    ):
        self.storage_client = storage_client
        self.folders = folders
        self.processor = processor or SimulatedProcessor()
        self.output_mode = OutputMode(output_mode)

    def _failure(
        self,
        file_id: str,
        failed_stage: PipelineState,
        last_state: PipelineState,
        message: str,
        cause: Exception,
    ) -> PipelineError:
        logging.error(f"{message}: {cause}", exc_info=True)
        return PipelineError(
            file_id, failed_stage, last_state, f"{message}: {cause}", state=PipelineState.FAILED
        )

    def check_in_input(self, file_id: str) -> FileRecord:
        """
        Fetches the file and confirms it is in the input folder.

        Raises:
            NotInInputFolderError: If it is not. No move is attempted.
        """
        logging.info(f"Retrieving metadata for file: {file_id}")
        record = self.storage_client.get_file(file_id)
        logging.info(f"File metadata: ID={record.id}, Name={record.name}, Parents={record.parents}")
        if not record.is_in(self.folders.input):
            logging.warning(f"File {file_id} is not in the input folder, ignoring.")
            raise NotInInputFolderError(file_id, self.folders.input)
        return record

    def run(self, file_id: str) -> PipelineResult:
        """
        Runs the whole pipeline for one file.

        Raises:
            NotInInputFolderError: The file is not in the input folder (including
                a repeated notification for a file that was already moved on).
            FileUnavailableError: The file does not exist or cannot be read.
            PipelineError: A step failed after the file left the input folder,
                or its metadata could not be fetched for a transient reason.
        """
        try:
            record = self.check_in_input(file_id)
        except NotInInputFolderError:
            raise
        except PermanentError as e:
            # Unknown or deleted file: rejected like one outside the input folder.
            logging.warning(f"File {file_id} could not be retrieved, ignoring: {e}")
            raise FileUnavailableError(file_id, str(e)) from e
        except Exception as e:
            raise self._failure(file_id, PipelineState.AT_INPUT, PipelineState.AT_INPUT, "Failed to get file metadata", e) from e

        state = PipelineState.AT_INPUT

        logging.info(f"Moving file {file_id} to temp folder {self.folders.staging}")
        try:
            self.storage_client.move_file(file_id, self.folders.folder_for(FolderRole.STAGING))
        except Exception as e:
            raise self._failure(file_id, PipelineState.AT_STAGING, state, "Failed to move file to temp folder", e) from e
        state = PipelineState.AT_STAGING

        if self.output_mode == OutputMode.COPY:
            return self._process_and_copy(record, state)

        try:
            self.processor.process(record)
        except Exception as e:
            raise self._failure(file_id, PipelineState.PROCESSED, state, "Failed to process file", e) from e
        state = PipelineState.PROCESSED

        logging.info(f"Moving file {file_id} to output folder {self.folders.output}")
        try:
            self.storage_client.move_file(file_id, self.folders.folder_for(FolderRole.OUTPUT))
        except Exception as e:
            raise self._failure(file_id, PipelineState.AT_OUTPUT, state, "Failed to move file to output folder", e) from e

        logging.info(f"File {file_id} processed successfully")
        return PipelineResult(file_id=file_id, file_name=record.name, state=PipelineState.AT_OUTPUT)

    def _process_and_copy(self, record: FileRecord, state: PipelineState) -> PipelineResult:
        """Downloads the staged file, processes its bytes and creates the result in the output folder."""
        file_id = record.id
        try:
            logging.info(f"Downloading file {file_id}")
            content = self.storage_client.download_file(file_id)
            content = self.processor.process(record, content)
        except Exception as e:
            raise self._failure(file_id, PipelineState.PROCESSED, state, "Failed to process file", e) from e
        state = PipelineState.PROCESSED

        logging.info(f"Creating file {record.name} in output folder {self.folders.output}")
        try:
            output_file_id = self.storage_client.create_file(record.name, self.folders.output, content)
        except Exception as e:
            raise self._failure(file_id, PipelineState.AT_OUTPUT, state, "Failed to create file in output folder", e) from e

        logging.info(f"File {file_id} processed successfully")
        return PipelineResult(
            file_id=file_id,
            file_name=record.name,
            state=PipelineState.AT_OUTPUT,
            output_file_id=output_file_id,
        )
