"""Custom exceptions for pve-cloud-template."""


class TemplateError(RuntimeError):
    """Raised on unrecoverable configuration or provisioning errors."""


class InvalidSizeError(TemplateError):
    """Requested size is not one of the known size profiles."""


class InvalidRequestError(TemplateError):
    """A provisioning request field failed validation."""


class DistroConfigError(TemplateError):
    """The distribution catalogue is missing, unreadable or malformed."""


class MissingSSHKeyError(TemplateError):
    pass


class MissingHomeDirError(TemplateError):
    pass


class MissingToolError(TemplateError):
    pass


class PrivilegeError(TemplateError):
    pass


class DownloadError(TemplateError):
    pass


class DiskImportError(TemplateError):
    """``qm importdisk`` completed but no imported volume could be found."""


class HypervisorCommandError(TemplateError):
    """A ``qm`` invocation exited non-zero."""

    def __init__(self, message: str, returncode: int = 1, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr
