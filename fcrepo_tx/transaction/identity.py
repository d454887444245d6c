from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fcrepo_tx.core.headers import LOCATION
from fcrepo_tx.core.response import FcrepoResponse
from fcrepo_tx.core.uri_utils import TX_SEGMENT, is_absolute, join_uri, split_transaction_location
from fcrepo_tx.exceptions import ProtocolError, ResourceOutsideRepositoryError


class TransactionURI(BaseModel):
    """The server-assigned location of a live transaction.

    Locations look like ``{repository root}/fcr:tx/{transaction id}`` and are
    never equal to a plain resource URI.
    """

    model_config = ConfigDict(frozen=True)

    location: str = Field()

    def __init__(self, location: str, **kwargs) -> None:
        super().__init__(location=location, **kwargs)

    @field_validator("location")
    @classmethod
    def validate_location(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value:
            raise ValueError("Transaction location must not be empty")
        if not is_absolute(value):
            raise ValueError(f"Transaction location must be an absolute URI: {value}")
        parts = split_transaction_location(value)
        if parts is None or parts[2]:
            raise ValueError(f"Transaction location must end with /{TX_SEGMENT}/<id>: {value}")
        return value

    @classmethod
    def from_response(cls, response: FcrepoResponse) -> "TransactionURI":
        """Read the transaction location from a start response's Location header."""
        location = response.location
        if not location:
            raise ProtocolError(
                f"Response from {response.uri} has no {LOCATION} header", uri=response.uri
            )
        try:
            return cls(location)
        except ValueError as e:
            raise ProtocolError(
                f"Malformed transaction {LOCATION} header '{location}'", uri=response.uri, detail=str(e)
            ) from e

    def __str__(self) -> str:
        return self.location

    @property
    def repository_root(self) -> str:
        """The repository root this transaction was started against."""
        return self.location[: self.location.rindex(f"/{TX_SEGMENT}/")]

    @property
    def transaction_id(self) -> str:
        return self.location.rsplit("/", 1)[1]

    def contains(self, uri: str) -> bool:
        """Whether `uri` is this transaction's location or routes through it."""
        return uri == self.location or uri.startswith(self.location + "/")

    def resource_uri_within(self, resource_uri: str) -> str:
        """Rewrite `resource_uri` so it routes through this transaction.

        The path relative to the repository root is preserved:

            >>> tx = TransactionURI("http://localhost/rest/fcr:tx/abc")
            >>> tx.resource_uri_within("http://localhost/rest/c1/c2")
            'http://localhost/rest/fcr:tx/abc/c1/c2'

        The repository root itself maps to the transaction location, with or
        without trailing slashes.

        Raises:
            ResourceOutsideRepositoryError: If `resource_uri` is not under the repository root.
        """
        if self.contains(resource_uri):
            return resource_uri
        root = self.repository_root
        if resource_uri.rstrip("/") == root:
            return self.location
        if not resource_uri.startswith(root + "/"):
            raise ResourceOutsideRepositoryError(
                f"{resource_uri} is not within the repository root {root}", uri=resource_uri
            )
        return join_uri(self.location, resource_uri[len(root) :])

    def resource_uri_outside(self, uri: str) -> str:
        """Strip this transaction's location from `uri`, returning the plain resource URI."""
        if not self.contains(uri):
            return uri
        return self.repository_root + uri[len(self.location) :]

    def same_transaction(self, reference: str) -> bool:
        """Whether a transaction reference echoed by the server names this transaction."""
        reference = reference.strip().rstrip("/")
        if reference == self.location:
            return True
        # some servers echo only the transaction id
        if not urlparse(reference).scheme:
            return reference == self.transaction_id
        return False
