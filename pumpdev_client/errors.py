"""Exception types raised by the PumpDev client."""


class PumpDevError(Exception):
    """Base class for all client errors."""


class ConfigError(PumpDevError):
    """Missing or malformed configuration (e.g. no PRIVATE_KEY)."""


class ApiError(PumpDevError):
    """The PumpDev API answered with a non-200 status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class MetadataUploadError(PumpDevError):
    """Uploading token metadata to IPFS failed."""


class MaterializeError(PumpDevError):
    """A transaction payload could not be deserialized."""


class SigningError(PumpDevError):
    """A keypair could not be applied to a transaction."""


class MissingSignerError(SigningError):
    """A transaction declares a signer role with no local credential."""

    def __init__(self, roles):
        self.roles = list(roles)
        super().__init__(f"No local keypair for signer role(s): {', '.join(self.roles)}")


class SubmissionError(PumpDevError):
    """Sending a transaction to the network failed."""


class BundleSubmissionError(SubmissionError):
    """Every block-engine endpoint rejected the bundle."""
