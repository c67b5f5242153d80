# exceptions.py


class PermanentError(Exception):
    """An error that will not be fixed by a retry (e.g., a file in the wrong folder)."""
    pass


class TransientError(Exception):
    """A temporary error (e.g., a network failure) that might resolve on a retry."""
    pass


class ConfigurationError(PermanentError):
    """The remote objects or the settings are not in a shape the pipeline supports."""
    pass


class UnsupportedParentsError(ConfigurationError):
    """The file has more than one parent folder, so its location is ambiguous."""
    pass


class NotInInputFolderError(PermanentError):
    """The file is not (or no longer) in the configured input folder."""

    def __init__(self, file_id: str, input_folder_id: str):
        self.file_id = file_id
        self.input_folder_id = input_folder_id
        super().__init__(
            f"File {file_id} is not in the input folder {input_folder_id}"
        )


class FileUnavailableError(PermanentError):
    """The file could not be found or read, so it cannot enter the pipeline."""

    def __init__(self, file_id: str, reason: str):
        self.file_id = file_id
        super().__init__(f"File {file_id} is unavailable: {reason}")


class NotificationError(PermanentError):
    """A notification payload could not be decoded into a file identifier."""
    pass


class PipelineError(Exception):
    """
    A pipeline run aborted part way through.

    `failed_stage` is the state the run was trying to reach, `last_state` the
    last one it actually reached. Nothing is rolled back, so `last_state` is
    where the file was left. `state` is the state of the run itself, always
    `PipelineState.FAILED` when raised by the mover.
    """

    def __init__(self, file_id: str, failed_stage, last_state, message: str, state=None):
        self.file_id = file_id
        self.failed_stage = failed_stage
        self.last_state = last_state
        self.state = state
        super().__init__(message)
